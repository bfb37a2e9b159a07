# Repositories package.
#
# One repository per mapped entity.  Each wraps lookups, writes and the
# paginated queries its services need:
#
#   articles       — Article, article reactions, public visibility predicate
#   comments       — Comment threads, moderation listings, report counter
#   users          — User, role sync, permission resolution, follow graph
#   roles          — Role, Permission
#   taxonomy       — Category (tree helpers), Tag
#   media          — Media library
#   notifications  — Notification, per-recipient UserNotification rows
#   newsletter     — NewsletterSubscriber
#   tokens         — issued auth tokens, password reset tokens
#
# Repositories are constructed per call with the request's AsyncSession and
# flush without committing.
