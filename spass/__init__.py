"""
spass - a pass-compatible password store core

Reads and writes the same on-disk layout as pass(1): one gpg-encrypted file
per secret under ~/.password-store, a .gpg-id file naming the recipient key.

Key Features:
- Secret bodies: password line + "key: value" pairs + optional otpauth URI
- Password generation from the OS secure random source
- TOTP codes with "wait for a fresh window" support
- Breach check against Have I Been Pwned (k-anonymity, only 5 hash chars sent)
- Secure-ish delete: overwrite the file before unlinking it

Components:
- secret.py: Body format (decode/encode/set_password) and secret names
- generate.py: Password generator
- otp.py: TOTP derivation
- pwnd.py: Breach check client
- crypto.py: gpg subprocess wrapper and hashing helpers
- store.py: File-backed (and in-memory) secret stores
- vault.py: The user-facing operations, wiring everything together
- config.py / logger.py: Settings from the environment, logging setup

Usage:
    from spass.config import Settings
    from spass.vault import Vault

    vault = Vault.from_settings(Settings())
    vault.password("work/email")
    vault.otp("work/email", wait=True)
"""

__version__ = "0.1.0"
