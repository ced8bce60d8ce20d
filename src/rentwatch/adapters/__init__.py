"""Storage and messaging-provider adapters implementing the core ports."""
