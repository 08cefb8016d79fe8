import logging
import os

import yaml

logger = logging.getLogger(__name__)

# ENV variable -> (section, key). Environment wins over YAML.
ENV_OVERRIDES = {
    "FACEBOOK_APP_ID": ("facebook", "app_id"),
    "FACEBOOK_APP_SECRET": ("facebook", "app_secret"),
    "FACEBOOK_REDIRECT_URI": ("facebook", "redirect_uri"),
    "FACEBOOK_PAGE_ID": ("facebook", "page_id"),
    "FACEBOOK_ACCESS_TOKEN": ("facebook", "access_token"),
    "INSTAGRAM_APP_ID": ("instagram", "app_id"),
    "INSTAGRAM_APP_SECRET": ("instagram", "app_secret"),
    "INSTAGRAM_REDIRECT_URI": ("instagram", "redirect_uri"),
    "INSTAGRAM_ACCOUNT_ID": ("instagram", "account_id"),
    "INSTAGRAM_ACCESS_TOKEN": ("instagram", "access_token"),
    "TIKTOK_CLIENT_KEY": ("tiktok", "client_key"),
    "TIKTOK_CLIENT_SECRET": ("tiktok", "client_secret"),
    "TIKTOK_REDIRECT_URI": ("tiktok", "redirect_uri"),
    "TIKTOK_ACCESS_TOKEN": ("tiktok", "access_token"),
    "PORT": ("server", "port"),
    "PUBLIC_BASE_URL": ("server", "public_base_url"),
}


def load_config(config_file: str):
    """
    Load configuration settings from a YAML file.

    This function reads and parses a YAML file to load configuration data into a
    Python dictionary. It ensures proper error handling for missing files or
    invalid YAML syntax.

    Args:
        config_file (str): The file path to the YAML configuration file.

    Returns:
        dict: A dictionary containing the parsed configuration data.

    Raises:
        FileNotFoundError: If the specified configuration file is not found.
        Exception: If there is an error while parsing the YAML file.

    Example Usage:
        config = load_config("config/config.yaml")
        print(config["facebook"]["page_id"])  # Access specific configuration values.

    Notes:
        - The function uses `yaml.safe_load` to safely parse the YAML file,
          which avoids executing arbitrary Python code.
        - An empty file yields an empty dict.
    """
    try:
        with open(config_file, encoding="utf-8") as file:
            config = yaml.safe_load(file)
            return config or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file {config_file} not found.")
    except yaml.YAMLError as e:
        raise Exception(f"Error parsing YAML file: {e}")


def apply_env_overrides(config: dict, environ=None) -> dict:
    """Copy platform secrets from the environment into `config` (in place) and return it."""
    environ = os.environ if environ is None else environ

    for env_name, (section, key) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        value = raw.strip()
        if (section, key) == ("server", "port"):
            try:
                value = int(value)
            except ValueError:
                logger.warning("Ignoring non-numeric %s=%r", env_name, raw)
                continue
        config.setdefault(section, {})
        if config[section] is None:
            config[section] = {}
        config[section][key] = value
        logger.debug("Config %s.%s taken from $%s", section, key, env_name)

    return config
