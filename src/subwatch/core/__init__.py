"""Core domain package for subwatch.

Core contains path decomposition, watcher resolution, the eligibility policy,
message composition and dispatch without any storage, mail or markup specific
code, keeping the business logic portable.
"""
