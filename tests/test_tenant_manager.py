"""
Unit tests for tenant resolution, mutation and white-label artifacts.
"""
import copy

import pytest

from chatguus.cache import TTLCache
from chatguus.config import settings
from chatguus.default_tenants import DEMO_COMPANY
from chatguus.exceptions import NotFoundError, ValidationError
from chatguus.models import Tenant
from chatguus.tenant_manager import TenantManager, darken_color, lighten_color, normalize_domain


def new_tenant(tenant_id="acme", **overrides):
    data = copy.deepcopy(DEMO_COMPANY)
    data.update({"id": tenant_id, "name": "Acme", "domain": "acme.example.com"})
    data.pop("apiKey", None)
    data.update(overrides)
    return data


class TestResolve:
    """id, then header, then domain, then the default."""

    def test_unknown_id_falls_back_to_default(self, tenants):
        assert tenants.resolve(tenant_id="nope").id == "koepel"

    def test_nothing_given_is_default(self, tenants):
        assert tenants.resolve().id == "koepel"

    def test_id_beats_header_and_domain(self, tenants):
        tenant = tenants.resolve(tenant_id="demo-company", header="koepel", domain="cupolaxs.nl")
        assert tenant.id == "demo-company"

    def test_header_used_when_id_unknown(self, tenants):
        assert tenants.resolve(tenant_id="nope", header="demo-company").id == "demo-company"

    def test_domain_from_origin(self, tenants):
        assert tenants.resolve(domain="https://www.demo.example.com").id == "demo-company"

    def test_inactive_tenant_is_skipped(self, tenants):
        tenants.update("demo-company", {"active": False})
        assert tenants.resolve(tenant_id="demo-company").id == "koepel"


class TestLookup:

    def test_unknown_tenant_message(self, tenants):
        with pytest.raises(NotFoundError) as exc:
            tenants.get("unknown-id")
        assert exc.value.status_code == 404
        assert exc.value.detail == "Tenant unknown-id not found"

    def test_lookup_by_api_key(self, tenants):
        tenant = tenants.create(new_tenant())
        assert tenant.api_key.startswith("tk_")
        assert tenants.get_by_api_key(tenant.api_key).id == "acme"
        assert tenants.get_by_api_key("tk_wrong") is None


class TestMutation:
    """create / update / delete with validation."""

    def test_create_and_duplicate(self, tenants):
        tenants.create(new_tenant())
        with pytest.raises(ValidationError):
            tenants.create(new_tenant())

    def test_create_requires_fields(self, tenants):
        data = new_tenant()
        del data["routing"]
        with pytest.raises(ValidationError) as exc:
            tenants.create(data)
        assert "routing" in exc.value.detail

    def test_create_rejects_bad_color(self, tenants):
        data = new_tenant()
        data["branding"]["primaryColor"] = "blue"
        with pytest.raises(ValidationError):
            tenants.create(data)

    def test_update_merges_nested_sections(self, tenants):
        tenant = tenants.update("koepel", {"branding": {"primaryColor": "#ff0000"}})
        assert tenant.branding.primary_color == "#ff0000"
        assert tenant.branding.company_name == "De Koepel"

    def test_update_rejects_blank_routing(self, tenants):
        with pytest.raises(ValidationError) as exc:
            tenants.update("koepel", {"routing": {"general": "", "it": ""}})
        assert exc.value.status_code == 400
        assert set(exc.value.errors) == {"general", "it"}
        assert tenants.get("koepel").routing["general"] == "welcome@cupolaxs.nl"

    def test_create_rejects_non_email_routing(self, tenants):
        data = new_tenant()
        data["routing"]["sales"] = "not an address"
        with pytest.raises(ValidationError) as exc:
            tenants.create(data)
        assert "sales" in exc.value.detail
        assert tenants.find("acme") is None

    def test_general_email_falls_back_to_settings(self, koepel):
        tenant = Tenant.model_validate({**koepel.dump(), "routing": {"general": ""}})
        assert tenant.general_email == settings.email_general

    def test_update_cannot_change_id(self, tenants):
        tenant = tenants.update("demo-company", {"id": "other", "name": "Renamed"})
        assert tenant.id == "demo-company"
        assert tenant.name == "Renamed"

    def test_default_tenant_cannot_be_deleted(self, tenants):
        with pytest.raises(ValidationError) as exc:
            tenants.delete("koepel")
        assert exc.value.status_code == 400

    def test_delete_unknown(self, tenants):
        with pytest.raises(NotFoundError):
            tenants.delete("ghost")

    def test_import_reports_bad_entries(self, tenants):
        result = tenants.import_({"tenants": [new_tenant("one"), {"id": "broken"}]})
        assert result["imported"] == 1
        assert len(result["errors"]) == 1
        assert tenants.find("one") is not None

    def test_import_rejects_bad_format(self, tenants):
        with pytest.raises(ValidationError):
            tenants.import_({"tenants": "nope"})

    def test_export_contains_all_tenants(self, tenants):
        export = tenants.export()
        assert export["version"] == "1.0.0"
        assert {t["id"] for t in export["tenants"]} == {"koepel", "demo-company"}


class TestArtifacts:
    """CSS, widget config and cache invalidation."""

    def test_css_uses_primary_color(self, tenants, koepel):
        css = tenants.generate_css(koepel)
        assert koepel.branding.primary_color in css
        assert ".tenant-koepel" in css

    def test_update_invalidates_cached_css(self, tenants, koepel):
        before = tenants.generate_css(koepel)
        updated = tenants.update("koepel", {"branding": {"primaryColor": "#123456"}})
        after = tenants.generate_css(updated)
        assert before != after
        assert "#123456" in after

    def test_widget_config_has_no_routing(self, tenants, koepel):
        config = tenants.widget_config(koepel, "https://chat.example.com/")
        assert config["apiEndpoint"] == "https://chat.example.com/chat"
        assert "routing" not in config
        assert config["branding"]["primaryColor"] == koepel.branding.primary_color

    def test_custom_seed(self):
        manager = TenantManager(TTLCache(60), default_tenant_id="acme", seed=[new_tenant()])
        assert manager.default.id == "acme"

    def test_missing_default_is_rejected(self):
        with pytest.raises(ValueError):
            TenantManager(TTLCache(60), default_tenant_id="ghost")


class TestHelpers:

    def test_darken_and_lighten(self):
        assert darken_color("#ffffff", 10) == "#e5e5e5"
        assert lighten_color("#000000", 20) == "#333333"
        assert darken_color("#000000", 10) == "#000000"

    def test_normalize_domain(self):
        assert normalize_domain("https://www.Example.com:443/path") == "example.com"
