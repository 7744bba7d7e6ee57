"""
Services Module

Business logic shared by the API routers: audit logging, wallet ledger,
reseller accounts and RCS bot persistence.
"""
