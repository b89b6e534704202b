"""Common literal values used across pageforge.

These constants keep generated filenames, hosting targets, and default
endpoints centralized so the builder, the pipeline tasks, and tests import
the same values without drifting.

Examples
--------
>>> from pageforge import _constants
>>> _constants.HOSTING_FILES["apache"]
'.htaccess'
>>> _constants.SITE_NAV_PATH
'data/site-nav.json'
"""

SITE_NAV_PATH = "data/site-nav.json"
SITEMAP_FILENAME = "sitemap.xml"
NOJEKYLL_FILENAME = ".nojekyll"
REPORTS_DIR = "_reports"

THEME_MANIFEST_NAMES = ("theme.json", "theme.yaml", "theme.yml")
SUPPORTED_THEME_SCHEMAS = frozenset({1, 2})

HOSTING_FILES: dict[str, str] = {
    "netlify": "_redirects",
    "azure": "staticwebapp.config.json",
    "vercel": "vercel.json",
    "apache": ".htaccess",
    "nginx": "nginx.redirects.conf",
    "iis": "web.config",
}

HOSTING_ALIASES: dict[str, str] = {
    "netlify": "netlify",
    "azure": "azure",
    "azure-swa": "azure",
    "swa": "azure",
    "staticwebapp": "azure",
    "static-web-app": "azure",
    "vercel": "vercel",
    "apache": "apache",
    "apache2": "apache",
    "apache-2": "apache",
    "htaccess": "apache",
    ".htaccess": "apache",
    "nginx": "nginx",
    "nginx-conf": "nginx",
    "nginx.conf": "nginx",
    "nginxconfig": "nginx",
    "iis": "iis",
    "microsoft-iis": "iis",
    "webconfig": "iis",
    "web.config": "iis",
}

DEFAULT_INDEXNOW_ENDPOINT = "https://api.indexnow.org/indexnow"
DEFAULT_GITHUB_API = "https://api.github.com"
USER_AGENT = "pageforge/0.1"
