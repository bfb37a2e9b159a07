# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic for a single domain aggregate:
#
#   article_service               — public reads, reactions and reports by slug
#   article_admin_service         — management listing and CRUD for Article
#   article_status_service        — lifecycle transitions, feature/pin, reports
#   comment_service               — submission, soft delete and moderation
#   auth_service                  — registration, tokens and password reset
#   user_service                  — profiles, follow graph and user administration
#   taxonomy_service              — category tree and tags
#   media_service                 — uploads and the media library
#   notification_service          — authoring and audience fan-out
#   user_notification_service     — the recipient inbox
#   newsletter_service            — double opt-in subscriptions
#   stats_service                 — dashboard totals
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
