"""Analytics snippets injected at the end of every rendered page body."""

DAP_SRC = 'https://dap.digitalgov.gov/Universal-Federated-Analytics-Min.js?agency=DOD'

DAP_SCRIPT = f'<script src="{DAP_SRC}" id="_fed_an_ua_tag"></script>'

# Records a pageview for each page load once the DAP script has defined window.gas
PAGEVIEW_SCRIPT = (
    '<script>'
    'window.addEventListener("load", function () {'
    ' if (window.gas) { window.gas("send", "pageview", window.location.pathname); }'
    ' });'
    '</script>'
)


def post_body_components(config):
    """Scripts to append before ``</body>``; nothing outside production."""
    components = []
    if config.node_env == 'production':
        components.append(DAP_SCRIPT)
    if config.context == 'production':
        components.append(PAGEVIEW_SCRIPT)
    return components
