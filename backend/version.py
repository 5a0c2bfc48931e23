"""tenvault meta information.
   Multi-tenant secret store with per-tenant Argon2id keys and AES-256-GCM entries.
"""
__title__ = 'tenvault'
__description__ = (
   'Multi-tenant secret store with per-tenant Argon2id keys '
   'and AES-256-GCM encrypted entries.'
)
__version__ = '2.0.0'
