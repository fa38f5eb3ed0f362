import pytest

from benchlab.infrastructure.pricing import (
    ModelPricing,
    PricingRegistry,
    PricingRegistryError,
)


def test_default_catalog_exact_match():
    pricing = PricingRegistry.default().lookup("openai/gpt-4o-mini")

    assert pricing == ModelPricing(input_per_token=1.5e-07, output_per_token=6.0e-07)


def test_azure_deployment_priced_like_openai_model():
    registry = PricingRegistry.default()

    assert registry.lookup("azure/gpt-4o") == registry.lookup("openai/gpt-4o")


def test_suffix_match_for_other_vendors():
    registry = PricingRegistry({"anthropic/claude-x": ModelPricing(1e-06, 2e-06)})

    assert registry.lookup("bedrock/claude-x") == ModelPricing(1e-06, 2e-06)


def test_unknown_model_has_no_pricing():
    registry = PricingRegistry.default()

    assert registry.lookup("local/llama3") is None
    assert registry.lookup("no-slash") is None
    assert "local/llama3" not in registry
    assert "openai/gpt-4o" in registry


def test_register_from_config_overrides_catalog():
    registry = PricingRegistry.default()

    registry.register_from_config(
        {
            "openai/gpt-4o": {"input_per_token": 1e-06, "output_per_token": 1e-06},
            "local/llama3": {"input_per_token": 0, "output_per_token": "0"},
        }
    )

    assert registry.lookup("openai/gpt-4o") == ModelPricing(1e-06, 1e-06)
    assert registry.lookup("local/llama3") == ModelPricing(0.0, 0.0)


def test_register_from_config_rejects_incomplete_entries():
    with pytest.raises(PricingRegistryError, match="local/llama3"):
        PricingRegistry().register_from_config(
            {"local/llama3": {"input_per_token": 1e-06}}
        )


def test_registries_are_independent():
    first = PricingRegistry.default()
    second = PricingRegistry.default()

    first.register("local/llama3", ModelPricing(1.0, 1.0))

    assert "local/llama3" not in second


def test_estimate():
    assert ModelPricing(2e-06, 4e-06).estimate(1000, 250) == pytest.approx(0.003)
