import copy
import os
from typing import Any, Dict, Optional, Union

import dotenv
from cachetools import LRUCache

dotenv.load_dotenv()

ANSIBLE_RHAAP_KEY = "ansible.rhaap"
INTEGRATIONS_KEY = "integrations"


class ConfigurationService:
    """Service to read nested application configuration with caching.

    Keys are dotted paths into the configuration mapping, e.g. ``ansible.rhaap``
    or ``catalog.providers.rhaap``. Missing AAP connection settings fall back to
    environment variables (a ``.env`` file is loaded on import).
    """

    def __init__(self, logger, store: Optional[Dict[str, Any]] = None) -> None:
        self.logger = logger
        self.logger.debug("🔧 Initializing ConfigurationService")

        # Initialize LRU cache
        self.cache = LRUCache(maxsize=1000)
        self.logger.debug("📦 Initialized LRU cache with max size 1000")

        self.store = store or {}
        self.logger.debug("✅ ConfigurationService initialized successfully")

    async def get_config(self, key: str, default: Union[str, int, float, bool, dict, list, None] = None, use_cache: bool = True) -> Union[str, int, float, bool, dict, list, None]:
        """Get configuration value with LRU cache and environment variable fallback"""
        try:
            # Check cache first
            if use_cache and key in self.cache:
                self.logger.debug("📦 Cache hit for key: %s", key)
                return self.cache[key]

            value = self._lookup(key)
            if value is None:
                env_fallback = self._get_env_fallback(key)
                if env_fallback is not None:
                    self.logger.debug("📦 Using environment variable fallback for key: %s", key)
                    self.cache[key] = env_fallback
                    return env_fallback

                self.logger.debug("📦 Cache miss for key: %s", key)
                return default
            self.cache[key] = value
            return value
        except Exception as e:
            self.logger.error("❌ Failed to get config %s: %s", key, str(e))
            env_fallback = self._get_env_fallback(key)
            if env_fallback is not None:
                self.logger.debug("📦 Using environment variable fallback due to error for key: %s", key)
                return env_fallback
            return default

    async def get_root_config(self) -> Dict[str, Any]:
        """Return a copy of the whole configuration with environment fallbacks applied"""
        root = copy.deepcopy(self.store)
        rhaap = await self.get_config(ANSIBLE_RHAAP_KEY)
        if rhaap is not None:
            root.setdefault("ansible", {})["rhaap"] = rhaap
        integrations = await self.get_config(INTEGRATIONS_KEY)
        if integrations is not None:
            root[INTEGRATIONS_KEY] = integrations
        return root

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one cached key, or the whole cache"""
        if key is None:
            self.cache.clear()
        else:
            self.cache.pop(key, None)

    def _lookup(self, key: str) -> Any:
        node: Any = self.store
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def _get_env_fallback(self, key: str) -> Union[dict, None]:
        """Get environment variable fallback for specific configuration keys"""
        if key == ANSIBLE_RHAAP_KEY:
            base_url = os.getenv("AAP_BASE_URL")
            if base_url:
                return {
                    "baseUrl": base_url,
                    "token": os.getenv("AAP_TOKEN", ""),
                    "checkSSL": os.getenv("AAP_CHECK_SSL", "true").lower() != "false",
                }
        elif key == INTEGRATIONS_KEY:
            github_token = os.getenv("GITHUB_TOKEN")
            gitlab_token = os.getenv("GITLAB_TOKEN")
            if github_token or gitlab_token:
                integrations = {}
                if github_token:
                    integrations["github"] = [{"host": "github.com", "token": github_token}]
                if gitlab_token:
                    integrations["gitlab"] = [{"host": "gitlab.com", "token": gitlab_token}]
                return integrations
        return None
