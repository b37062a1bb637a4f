# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# the business rules for one part of the content backend:
#
#   content_service    CRUD + listing for Category and Tutorial
#   comment_service    comment creation and the moderation workflow
#   analytics_service  page-view roll-ups for the admin dashboard
#
# Service functions take an AsyncSession as their first argument and go
# through ``electrolab.store`` for every read and write, so the router
# layer controls the transaction boundary via the ``get_db`` dependency.
