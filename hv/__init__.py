"""hv core package.

Modules:
- config: INI parsing and config object
- database: SQLite engine, transactions and schema bootstrap
- models: SQLModel tables (Users, Doujins, DoujinPages, TagSets)
- sessions: per-user session token ledger
- credentials: registration, login/logout, authentication
- search: tag-filtered, paginated search statements
- repository: authenticated catalog reads and tag-set CRUD
- importer: validated doujin folder import
- library: the operation set exposed to request handlers
"""
