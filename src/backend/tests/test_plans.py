"""Tests for the plan catalog.

Covers:
- built-in tables translate -1 into unlimited limits at load time
- unknown plan names fall back to the free tiers
- a JSON override file replaces the built-in tables
- malformed tables raise ValidationError
"""

import json

import pytest

from quotahub.errors import ValidationError
from quotahub.plans import PlanCatalog, load_plan_catalog


class TestDefaultCatalog:
    def test_enterprise_org_plan_is_unlimited(self):
        plan = PlanCatalog.default().org_plan("ORG_ENTERPRISE")
        assert plan.shared_gateways.is_unlimited
        assert plan.shared_credits_per_month.is_unlimited

    def test_org_starter_has_finite_gateway_pool(self):
        plan = PlanCatalog.default().org_plan("ORG_STARTER")
        assert plan.shared_gateways.as_optional() == 5
        assert plan.workspace is not None
        assert plan.workspace.ram_mb.as_optional() == 4096

    def test_org_free_has_no_workspace(self):
        assert PlanCatalog.default().org_plan("ORG_FREE").workspace is None

    def test_unknown_plans_fall_back_to_free(self):
        catalog = PlanCatalog.default()
        assert catalog.personal_plan("NOPE").name == "FREE"
        assert catalog.org_plan(None).name == "ORG_FREE"

    def test_no_limit_holds_the_raw_sentinel(self):
        catalog = PlanCatalog.default()
        for plan in catalog.organization.values():
            for lim in (plan.shared_gateways, plan.shared_plugins, plan.shared_workflows):
                assert lim.as_optional() != -1


class TestPlanFile:
    def test_load_from_file(self, tmp_path):
        path = tmp_path / "plans.json"
        path.write_text(
            json.dumps(
                {
                    "personal": {
                        "FREE": {
                            "execution_mode": "SERVERLESS",
                            "gateways": 2,
                            "plugins": 3,
                            "workflows": 4,
                            "credits_per_month": 100,
                        }
                    },
                    "organization": {
                        "ORG_FREE": {
                            "execution_mode": "SERVERLESS",
                            "shared_gateways": 1,
                            "shared_plugins": -1,
                            "shared_workflows": 1,
                            "shared_credits_per_month": 10,
                            "seats": 3,
                            "departments": 1,
                        }
                    },
                }
            )
        )
        catalog = load_plan_catalog(str(path))
        assert catalog.personal_plan("FREE").gateways.as_optional() == 2
        assert catalog.org_plan("ORG_FREE").shared_plugins.is_unlimited

    def test_empty_path_uses_defaults(self):
        assert "ORG_STARTER" in load_plan_catalog("").organization

    def test_malformed_table_raises_validation_error(self):
        with pytest.raises(ValidationError):
            PlanCatalog.from_raw({"FREE": {"gateways": 1}}, {})
