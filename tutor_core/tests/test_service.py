import tempfile

import pytest

from tutor_core.api import service
from tutor_core.domain.exceptions import ValidationError
from tutor_core.providers.backend_client import HttpBackendClient


def test_default_store_and_coordinator(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        class DummySettings:
            backend_base_url = "http://localhost:8787"
            backend_model = None
            http_timeout = 1.0
            storage_root = d

        monkeypatch.setattr("tutor_core.api.service.settings", DummySettings())
        service.reset_defaults()
        try:
            store = service.get_default_store()
            assert service.get_default_store() is store
            assert isinstance(service.get_default_client(), HttpBackendClient)
            assert [c.name for c in store.conversations] == ["Cat", "English Coach", "Practice Buddy"]

            conv = store.conversations[0]
            coordinator = service.create_coordinator(conv.id)
            assert coordinator.conversation_id == conv.id
            coordinator.close()

            with pytest.raises(ValidationError):
                service.create_coordinator("missing")
        finally:
            service.reset_defaults()
