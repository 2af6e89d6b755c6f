# Services package.
#
# Each module exposes one service class that encapsulates business
# logic for a single aggregate on top of the shared ``Store`` and
# ``CacheManager``:
#
#   post_service     - cached reads, search, pagination and author-only writes
#   comment_service  - cached comment pages and author-only writes
#   view_tracker     - deduplicated view counting
#   user_service     - registration, login and profiles
#
# Collaborators are passed in through the constructor; ``board.dependencies``
# builds them per request from ``app.state``.
