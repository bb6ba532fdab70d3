"""
spass - Store and Vault Tests

Uses a reversible fake cipher instead of gpg, so the file layout, .gpg-id
lookup and wipe-before-delete logic run against a real temp directory
without any keys.
"""

import stat

import pyperclip
import pytest

from spass import clipboard
from spass.config import Settings
from spass.editor import edit
from spass.errors import (
    EditorError,
    EncryptionError,
    InvalidQuery,
    KeyNotFound,
    MissingKeyID,
    NoMatch,
    NotFound,
    OTPNotConfigured,
    PasswordIsOTP,
    SecretExists,
    WipeIncomplete,
)
from spass.otp import TOTPDeriver
from spass.pwnd import BreachChecker
from spass.secret import SecretName
from spass.store import FILL_BYTE, FileStore, MemoryStore
from spass.vault import Vault

from test_simple import PASSWORD_SUFFIX, RFC_URI, FakeResponse, FakeSession


class FakeCipher:
    """Reversible stand-in for gpg: "<recipient>\\n" + reversed plaintext."""

    def __init__(self):
        self.recipients = []

    def encrypt(self, recipient, plaintext):
        self.recipients.append(recipient)
        return recipient.encode() + b"\n" + plaintext[::-1]

    def decrypt(self, path):
        with open(path, "rb") as f:
            _, _, body = f.read().partition(b"\n")
        return body[::-1]


class BrokenCipher:
    def encrypt(self, recipient, plaintext):
        raise EncryptionError("gpg failed with exit code 2", returncode=2)

    def decrypt(self, path):
        raise EncryptionError("gpg failed with exit code 2", returncode=2)


@pytest.fixture
def root(tmp_path):
    store_dir = tmp_path / "store"
    store_dir.mkdir()
    (store_dir / ".gpg-id").write_text("ROOTKEY\n")
    return store_dir


@pytest.fixture
def cipher():
    return FakeCipher()


@pytest.fixture
def store(root, cipher):
    return FileStore(root, cipher)


# =============================================================================
# FileStore
# =============================================================================

def test_resolve(store, root):
    assert store.resolve("work/email") == root / "work" / "email.gpg"
    assert store.resolve(SecretName("github")) == root / "github.gpg"


def test_write_and_read(store, root, cipher):
    """Test writing a secret and reading it back."""

    store.write("work/vpn", "hunter2\nusername: alice")

    path = root / "work" / "vpn.gpg"
    assert path.is_file()
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert b"hunter2" not in path.read_bytes()
    assert cipher.recipients == ["ROOTKEY"]

    assert store.read("work/vpn") == "hunter2\nusername: alice"
    assert store.exists("work/vpn")


def test_nearest_gpg_id_wins(store, root, cipher):
    (root / "work").mkdir()
    (root / "work" / ".gpg-id").write_text("  WORKKEY  \n")

    store.write("work/vpn", "a")
    store.write("work/deep/x", "b")
    store.write("home", "c")

    assert cipher.recipients == ["WORKKEY", "WORKKEY", "ROOTKEY"]


def test_missing_key_id(tmp_path, cipher):
    store = FileStore(tmp_path, cipher)

    with pytest.raises(MissingKeyID):
        store.write("work/vpn", "hunter2")
    assert not (tmp_path / "work" / "vpn.gpg").exists()
    assert cipher.recipients == []


def test_failed_encryption_leaves_old_version(root):
    store = FileStore(root, FakeCipher())
    store.write("x", "old")
    before = (root / "x.gpg").read_bytes()

    broken = FileStore(root, BrokenCipher())
    with pytest.raises(EncryptionError):
        broken.write("x", "new")
    with pytest.raises(EncryptionError):
        broken.read("x")

    assert (root / "x.gpg").read_bytes() == before


def test_read_not_found(store, root):
    with pytest.raises(NotFound):
        store.read("nope")

    # a directory that happens to carry the suffix is not a secret either
    (root / "dir.gpg").mkdir()
    with pytest.raises(NotFound):
        store.read("dir")
    assert not store.exists("dir")


def test_list(store, root):
    for rel in ["a.gpg", "work/b.gpg", "work/deep/c.gpg", "other/d.gpg", "work/.gpg-id"]:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x")

    assert [n.full for n in store.list()] == ["a", "other/d", "work/b", "work/deep/c"]
    assert [n.full for n in store.list("work")] == ["work/b", "work/deep/c"]
    assert [n.full for n in store.list("work/deep")] == ["work/deep/c"]
    assert store.list("missing") == []


def test_read_rejects_non_utf8_plaintext(root):
    class IdentityCipher:
        def encrypt(self, recipient, plaintext):
            return plaintext

        def decrypt(self, path):
            with open(path, "rb") as f:
                return f.read()

    (root / "bin.gpg").write_bytes(b"\xff\xfe pw")

    with pytest.raises(EncryptionError) as exc:
        FileStore(root, IdentityCipher()).read("bin")
    assert isinstance(exc.value.__cause__, UnicodeDecodeError)


def test_remove_wipes_before_unlink(store, root, monkeypatch):
    """The file must hold only filler bytes by the time it is unlinked."""
    store.write("x", "hunter2\nusername: alice")
    path = root / "x.gpg"
    size = path.stat().st_size

    seen = []
    real_unlink = store._unlink

    def spy_unlink(p):
        with open(p, "rb") as f:
            seen.append(f.read())
        real_unlink(p)

    monkeypatch.setattr(store, "_unlink", spy_unlink)
    store.remove("x")

    assert seen == [FILL_BYTE * size]
    assert not path.exists()


def test_short_wipe_aborts_delete(store, root, monkeypatch):
    store.write("x", "hunter2")
    path = root / "x.gpg"
    original = path.read_bytes()

    unlinked = []
    monkeypatch.setattr(store, "_overwrite", lambda fd, data: len(data) - 1)
    monkeypatch.setattr(store, "_unlink", unlinked.append)

    with pytest.raises(WipeIncomplete) as exc:
        store.remove("x")

    assert exc.value.written == len(original) - 1
    assert exc.value.size == len(original)
    assert unlinked == []
    assert path.read_bytes() == original


def test_remove_not_found(store):
    with pytest.raises(NotFound):
        store.remove("nope")


def test_memory_store():
    store = MemoryStore({"work/a": "1", "b": "2"})

    assert store.read("work/a") == "1"
    assert [n.full for n in store.list()] == ["b", "work/a"]
    assert [n.full for n in store.list("work")] == ["work/a"]

    store.remove("b")
    assert not store.exists("b")
    with pytest.raises(NotFound):
        store.read("b")
    with pytest.raises(NotFound):
        store.remove("b")


# =============================================================================
# Vault
# =============================================================================

BODY = "\n".join([
    "hunter2",
    "Username: alice",
    "url: https://example.com",
    RFC_URI,
])


@pytest.fixture
def vault():
    return Vault(
        MemoryStore({"web/example": BODY, "otp-only": RFC_URI + "\nk: v"}),
        totp=TOTPDeriver(clock=lambda: 59, sleep=lambda s: None),
    )


def test_vault_reading(vault):
    assert vault.password("web/example") == "hunter2"
    assert vault.body("web/example") == BODY
    assert len(vault.pairs("web/example")) == 3
    assert vault.get("web/example", "url") == ["https://example.com"]
    assert vault.get("web/example", "username", case_insensitive=True) == ["alice"]

    with pytest.raises(KeyNotFound):
        vault.get("web/example", "username")
    with pytest.raises(NotFound):
        vault.password("missing")


def test_vault_otp(vault):
    assert vault.otp("web/example") == ("94287082", 1)

    # an otpauth URI on the password line is not picked up
    with pytest.raises(OTPNotConfigured):
        vault.otp("otp-only")
    with pytest.raises(PasswordIsOTP):
        vault.password("otp-only")


def test_vault_search(vault):
    matches = vault.search("USERNAME:ALI")
    assert [(n.full, p.key, p.value) for n, p in matches] == [
        ("web/example", "Username", "alice"),
    ]

    matches = vault.search("url:example.COM")
    assert [n.full for n, _ in matches] == ["web/example"]

    # empty key searches keyless lines; a URI on the password line is not a pair
    matches = vault.search(":acme")
    assert [(n.full, p.key) for n, p in matches] == [("web/example", None)]

    assert [n.full for n, _ in vault.search("k:")] == ["otp-only"]


def test_vault_search_errors(vault):
    with pytest.raises(InvalidQuery):
        vault.search("username")
    with pytest.raises(NoMatch):
        vault.search("username:bob")
    # keys are compared whole, not as substrings
    with pytest.raises(NoMatch):
        vault.search("user:alice")


def test_vault_set_password_keeps_body(vault):
    vault.set_password("web/example", "correct horse")

    assert vault.password("web/example") == "correct horse"
    assert vault.body("web/example") == BODY.replace("hunter2", "correct horse", 1)

    vault.set_password("brand/new", "pw")
    assert vault.body("brand/new") == "pw"


def test_vault_generate(vault):
    """Test password generation into a secret."""

    pw = vault.generate("new/site")
    assert len(pw) == 18
    assert vault.password("new/site") == pw

    with pytest.raises(SecretExists):
        vault.generate("web/example")
    assert vault.password("web/example") == "hunter2"

    pw = vault.generate("web/example", length=32, overwrite=True)
    assert len(pw) == 32
    assert vault.body("web/example") == BODY.replace("hunter2", pw, 1)


def test_vault_pwnd():
    session = FakeSession(FakeResponse(200, f"{PASSWORD_SUFFIX}:10\n"))
    vault = Vault(
        MemoryStore({"bad": "password", "good": "8f$kq!Lz0"}),
        breach=BreachChecker(session=session),
    )

    assert vault.pwnd("bad") is True
    assert vault.pwnd("good") is False


def test_vault_edit(vault):
    vault.editor = lambda text: text + "\nnote: edited"
    vault.edit("web/example")

    assert vault.get("web/example", "note") == ["edited"]


def test_vault_clipboard(vault):
    copied = []
    vault.copy = lambda text: copied.append(text) or True

    assert vault.copy_password("web/example")
    assert vault.copy_otp("web/example") == ("94287082", 1)
    assert copied == ["hunter2", "94287082"]


def test_vault_remove_and_list(vault):
    assert [n.full for n in vault.list()] == ["otp-only", "web/example"]
    vault.remove("otp-only")
    assert [n.full for n in vault.list()] == ["web/example"]


def test_vault_on_file_store(root, cipher):
    vault = Vault(FileStore(root, cipher))

    pw = vault.generate("work/vpn")
    assert vault.password("work/vpn") == pw
    assert vault.exists("work/vpn")

    vault.remove("work/vpn")
    assert not vault.exists("work/vpn")


def test_vault_from_settings(root):
    vault = Vault.from_settings(Settings(store_dir=root, hibp_api_key="k"))

    assert isinstance(vault.store, FileStore)
    assert vault.store.root == root
    assert vault.breach.api_key == "k"


# =============================================================================
# Collaborators
# =============================================================================

def test_editor_round_trip():
    assert edit("true", "hunter2\nk: v") == "hunter2\nk: v"
    assert edit("sed -i s/old/new/", "old\n") == "new\n"


def test_editor_failure():
    with pytest.raises(EditorError):
        edit("false", "x")


def test_clipboard(monkeypatch):
    copied = []
    monkeypatch.setattr(pyperclip, "copy", copied.append)
    assert clipboard.copy("hunter2") is True
    assert copied == ["hunter2"]

    def broken(text):
        raise pyperclip.PyperclipException("no clipboard")

    monkeypatch.setattr(pyperclip, "copy", broken)
    assert clipboard.copy("hunter2") is False
