"""
Robots policy per deployment context.

Production allows every crawler except on /admin and advertises the sitemap;
branch deploys and deploy previews shut crawlers out entirely.
"""

import logging

logger = logging.getLogger('PageGraph.Robots')


def robots_profiles(site_url):
    return {
        'production': {
            'policy': [{'user_agent': '*', 'disallow': ['/admin']}],
            'sitemap': f"{site_url}/sitemap.xml",
            'host': site_url,
        },
        'branch-deploy': {
            'policy': [{'user_agent': '*', 'disallow': ['*']}],
            'sitemap': None,
            'host': None,
        },
        'deploy-preview': {
            'policy': [{'user_agent': '*', 'disallow': ['*']}],
            'sitemap': None,
            'host': None,
        },
    }


def default_profile(site_url):
    return {
        'policy': [{'user_agent': '*', 'allow': ['/']}],
        'sitemap': f"{site_url}/sitemap.xml",
        'host': site_url,
    }


def resolve_env(config):
    """Return the deployment context that selects the robots profile."""
    if not config.context_from_env:
        logger.warning("CONTEXT environment variable not set, using NODE_ENV")
    return config.context


def robots_policy(config):
    env = resolve_env(config)
    site_url = config.site_url.rstrip('/')
    profile = robots_profiles(site_url).get(env)
    if profile is None:
        logger.warning(f"No robots profile for environment {env!r}, using the default policy")
        profile = default_profile(site_url)
    return profile


def render_robots_txt(profile):
    groups = []
    for rule in profile['policy']:
        lines = [f"User-agent: {rule['user_agent']}"]
        lines.extend(f"Allow: {path}" for path in rule.get('allow', []))
        lines.extend(f"Disallow: {path}" for path in rule.get('disallow', []))
        groups.append('\n'.join(lines))

    content = '\n\n'.join(groups) + '\n'
    if profile.get('sitemap'):
        content += f"\nSitemap: {profile['sitemap']}\n"
    if profile.get('host'):
        content += f"Host: {profile['host']}\n"
    return content
