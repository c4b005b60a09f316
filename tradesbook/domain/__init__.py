"""Domain packages: one vertical slice per directory (schemas, service, router)"""
