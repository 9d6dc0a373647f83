"""Configuration package utilities."""

__all__ = ["AzureSettings", "ConfigController"]


def __getattr__(name: str):
    if name == "ConfigController":
        from config.controller import ConfigController

        return ConfigController
    if name == "AzureSettings":
        from config.settings import AzureSettings

        return AzureSettings
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
