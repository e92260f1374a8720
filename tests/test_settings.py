import os
import shutil
import sys
import tempfile
import unittest

import keyring
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig, shared_container_path
from db import SettingsRepository
from errors import InvalidArgument


class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1

    def __init__(self):
        self.store = {}

    def get_password(self, service, username):
        return self.store.get((service, username))

    def set_password(self, service, username, password):
        self.store[(service, username)] = password

    def delete_password(self, service, username):
        self.store.pop((service, username), None)


class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        keyring.set_keyring(DummyKeyring())
        os.environ["ENCRYPT_SETTINGS"] = "1"
        self.dir = tempfile.mkdtemp()
        self.path = os.path.join(self.dir, "enc_settings.yaml")

    def tearDown(self) -> None:
        shutil.rmtree(self.dir, ignore_errors=True)
        os.environ.pop("ENCRYPT_SETTINGS", None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({"firebase_api_key": "secret", "theme": "light"})
        with open(self.path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        self.assertNotEqual(raw["firebase_api_key"], "secret")
        data = cfg.load()
        self.assertEqual(data["firebase_api_key"], "secret")
        self.assertEqual(data["theme"], "light")

    def test_repository_reads_key_from_keyring(self) -> None:
        db_path = os.path.join(self.dir, "workout.db")
        settings = SettingsRepository(db_path, self.path)
        settings.set_firebase_credentials("secret", "proj", "app", "sender")
        reopened = SettingsRepository(db_path, self.path)
        self.assertEqual(reopened.firebase_credentials()["firebase_api_key"], "secret")

    def test_only_marked_keys_are_read_from_keyring(self) -> None:
        keyring.set_password(YamlConfig.KEYRING_SERVICE, "firebase_api_key", "stale")
        cfg = YamlConfig(self.path)
        cfg.save({"firebase_api_key": ""})
        self.assertEqual(cfg.load()["firebase_api_key"], "")

        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"firebase_api_key": YamlConfig.STORED_IN_KEYRING}, f)
        keyring.get_keyring().delete_password(YamlConfig.KEYRING_SERVICE, "firebase_api_key")
        self.assertNotIn("firebase_api_key", cfg.load())

    def test_keyring_can_be_disabled_explicitly(self) -> None:
        cfg = YamlConfig(self.path, use_keyring=False)
        cfg.save({"firebase_api_key": "plain"})
        with open(self.path, "r", encoding="utf-8") as f:
            self.assertEqual(yaml.safe_load(f)["firebase_api_key"], "plain")


class SettingsRepositoryTest(unittest.TestCase):
    def setUp(self) -> None:
        self.dir = tempfile.mkdtemp()
        self.db = os.path.join(self.dir, "workout.db")
        self.yaml = os.path.join(self.dir, "settings.yaml")
        self.settings = SettingsRepository(self.db, self.yaml)

    def tearDown(self) -> None:
        shutil.rmtree(self.dir, ignore_errors=True)

    def test_defaults(self) -> None:
        data = self.settings.all_settings()
        self.assertEqual(data["weight_unit"], "kg")
        self.assertEqual(data["theme"], "system")
        self.assertIs(data["has_unsynced_changes"], False)
        self.assertTrue(os.path.exists(self.yaml))

    def test_update_validates(self) -> None:
        self.settings.update(weight_unit="lbs", theme="dark")
        self.assertEqual(self.settings.weight_unit(), "lbs")
        with self.assertRaises(InvalidArgument):
            self.settings.update(weight_unit="stone")
        with self.assertRaises(InvalidArgument):
            self.settings.update(theme="sepia")
        self.assertEqual(self.settings.weight_unit(), "lbs")

    def test_numeric_credentials_stay_strings(self) -> None:
        self.settings.set_firebase_credentials("123", "proj-1", "1:42:ios:ff", "0042")
        creds = SettingsRepository(self.db, self.yaml).firebase_credentials()
        self.assertEqual(creds["firebase_api_key"], "123")
        self.assertEqual(creds["firebase_sender_id"], "0042")

    def test_yaml_edits_are_picked_up(self) -> None:
        data = YamlConfig(self.yaml).load()
        data["calendar_color"] = "#ff0000"
        YamlConfig(self.yaml).save(data)
        self.assertEqual(self.settings.get_text("calendar_color", ""), "#ff0000")

    def test_dirty_flag_round_trip(self) -> None:
        self.settings.mark_dirty()
        self.assertTrue(SettingsRepository(self.db, self.yaml).is_dirty())
        self.settings.mark_clean()
        self.assertFalse(SettingsRepository(self.db, self.yaml).is_dirty())


class SharedContainerTest(unittest.TestCase):
    def tearDown(self) -> None:
        os.environ.pop("PB_SHARED_CONTAINER", None)

    def test_environment_override(self) -> None:
        os.environ["PB_SHARED_CONTAINER"] = "/tmp/pb-shared"
        self.assertEqual(shared_container_path(), "/tmp/pb-shared")

    def test_default_uses_app_group(self) -> None:
        os.environ.pop("PB_SHARED_CONTAINER", None)
        path = shared_container_path("group.example")
        self.assertTrue(path.endswith(os.path.join(".local", "share", "group.example")))


if __name__ == "__main__":
    unittest.main()
