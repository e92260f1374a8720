import os
import tempfile
import yaml
import keyring

APP_VERSION = "1.0.0"
APP_GROUP = "group.progressbuddy.shared"
DB_FILENAME = "workout.db"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def shared_container_path(app_group: str = APP_GROUP) -> str:
    """Return the directory shared by the app and its widget process."""
    override = os.environ.get("PB_SHARED_CONTAINER")
    if override:
        return os.path.expanduser(override)
    return os.path.join(os.path.expanduser("~/.local/share"), app_group)


def _atomic_dump(path: str, data: dict) -> None:
    """Write ``data`` as YAML through a temp file and ``os.replace``."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=directory, prefix="." + os.path.basename(path) + ".", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class YamlConfig:
    """Mirror of the preferences table kept in ``settings.yaml``.

    With ``ENCRYPT_SETTINGS=1`` the Firebase API key is held in the system
    keyring and the file only records that a secret is stored there.
    """

    SECRET_KEYS = frozenset({"firebase_api_key"})
    KEYRING_SERVICE = "progressbuddy"
    STORED_IN_KEYRING = "<keyring>"

    def __init__(self, path: str = "settings.yaml", use_keyring: bool | None = None) -> None:
        self.path = path
        if use_keyring is None:
            use_keyring = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.use_keyring = use_keyring

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        if self.use_keyring:
            for key in self.SECRET_KEYS & set(data):
                if data[key] != self.STORED_IN_KEYRING:
                    continue
                secret = keyring.get_password(self.KEYRING_SERVICE, key)
                if secret is None:
                    del data[key]
                else:
                    data[key] = secret
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.use_keyring:
            for key in self.SECRET_KEYS & set(out):
                # Empty keys stay in the file.
                if out[key]:
                    keyring.set_password(self.KEYRING_SERVICE, key, str(out[key]))
                    out[key] = self.STORED_IN_KEYRING
        _atomic_dump(self.path, out)


class SharedDefaults:
    """Small YAML key-value file living in the shared container.

    Writes go through a temporary file and ``os.replace`` so a reader in
    another process sees either the previous or the new content.
    """

    FILENAME = "shared_defaults.yaml"

    def __init__(self, container: str) -> None:
        self.container = container
        self.path = os.path.join(container, self.FILENAME)

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default=None):
        return self.load().get(key, default)

    def update(self, **values) -> None:
        try:
            data = self.load()
        except yaml.YAMLError:
            data = {}
        data.update(values)
        self._write(data)

    def _write(self, data: dict) -> None:
        _atomic_dump(self.path, data)
