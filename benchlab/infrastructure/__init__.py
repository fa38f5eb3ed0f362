from .file_baseline_store import FileBaselineStore
from .pricing import ModelPricing, PricingRegistry
from .yaml_config_loader import YamlConfigLoader, YamlConfigLoaderError

__all__ = [
    "FileBaselineStore",
    "ModelPricing",
    "PricingRegistry",
    "YamlConfigLoader",
    "YamlConfigLoaderError",
]
