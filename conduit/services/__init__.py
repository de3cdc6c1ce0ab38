# Services package.
#
# Each module exposes async functions holding the business rules and the
# database access for one part of the domain:
#
#   user_service    : registration, login, account settings
#   profile_service : public profiles and the follow graph
#   article_service : article CRUD, slugs, favorites
#   feed_service    : filtered global feed and the personalised feed
#   comment_service : comments on an article
#   tag_service     : tag upsert and the popular-tags listing
#
# All service functions take an AsyncSession first and the viewer id
# (None for anonymous) where the result depends on who is asking.  They
# flush but never commit: the ``get_db`` dependency owns the transaction.
