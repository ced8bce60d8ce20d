"""Core domain package for rentwatch.

Core contains extraction, validation, and orchestration logic without any
WhatsApp or storage-specific code, keeping the business logic portable.
"""
