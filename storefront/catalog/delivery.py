"""
Delivery modes and their storefront themes.

A client session holds one delivery mode (instant, nextDay or standard).
The mode filters product listings and selects the colour theme the client
renders; the theme is exposed as CSS custom properties keyed on the
`data-delivery` attribute of the document root.
"""
import logging

logger = logging.getLogger(__name__)

DELIVERY_INSTANT = 'instant'
DELIVERY_NEXT_DAY = 'nextDay'
DELIVERY_STANDARD = 'standard'

DELIVERY_MODES = (DELIVERY_INSTANT, DELIVERY_NEXT_DAY, DELIVERY_STANDARD)
DEFAULT_DELIVERY_MODE = DELIVERY_STANDARD

DELIVERY_MODE_CHOICES = [
    (DELIVERY_INSTANT, 'Instant'),
    (DELIVERY_NEXT_DAY, 'Next Day'),
    (DELIVERY_STANDARD, 'Standard'),
]

# Product boolean field backing each mode
DELIVERY_FIELD_MAP = {
    DELIVERY_INSTANT: 'deliver_instant',
    DELIVERY_NEXT_DAY: 'deliver_next_day',
    DELIVERY_STANDARD: 'deliver_standard',
}

SESSION_KEY = 'delivery_mode'
RESPONSE_HEADER = 'X-Delivery-Mode'
THEME_ATTRIBUTE = 'data-delivery'

THEME_COLORS = {
    DELIVERY_STANDARD: {
        'brand': '#2563eb',
        'brandHover': '#1e40af',
        'bg': '#ffffff',
        'navbarBg': '#ffffff',
        'textPrimary': '#111827',
        'textSecondary': '#6b7280',
        'border': '#e5e7eb',
        'shadow': 'rgba(0, 0, 0, 0.1)',
    },
    DELIVERY_INSTANT: {
        'brand': '#16a34a',
        'brandHover': '#15803d',
        'bg': '#f0fdf4',
        'navbarBg': '#dcfce7',
        'textPrimary': '#14532d',
        'textSecondary': '#16a34a',
        'border': '#bbf7d0',
        'shadow': 'rgba(22, 163, 74, 0.1)',
    },
    DELIVERY_NEXT_DAY: {
        'brand': '#f59e0b',
        'brandHover': '#d97706',
        'bg': '#fffbeb',
        'navbarBg': '#fef3c7',
        'textPrimary': '#92400e',
        'textSecondary': '#f59e0b',
        'border': '#fed7aa',
        'shadow': 'rgba(245, 158, 11, 0.1)',
    },
}

CSS_VARIABLES = {
    'brand': '--brand',
    'brandHover': '--brand-hover',
    'bg': '--bg',
    'navbarBg': '--navbar-bg',
    'textPrimary': '--text-primary',
    'textSecondary': '--text-secondary',
    'border': '--border',
    'shadow': '--shadow',
}


class InvalidDeliveryMode(ValueError):
    """Raised for any value outside DELIVERY_MODES"""


def is_valid_delivery_mode(value):
    return isinstance(value, str) and value in DELIVERY_MODES


def normalize_delivery_mode(value):
    """Return value if it is a known delivery mode, raise InvalidDeliveryMode otherwise"""
    if not is_valid_delivery_mode(value):
        raise InvalidDeliveryMode(
            f"Invalid delivery mode. Expected one of: {', '.join(DELIVERY_MODES)}"
        )
    return value


def get_session_delivery_mode(request):
    session = getattr(request, 'session', None)
    if session is None:
        return DEFAULT_DELIVERY_MODE
    mode = session.get(SESSION_KEY)
    return mode if is_valid_delivery_mode(mode) else DEFAULT_DELIVERY_MODE


def has_session_delivery_mode(request):
    session = getattr(request, 'session', None)
    return session is not None and is_valid_delivery_mode(session.get(SESSION_KEY))


def set_session_delivery_mode(request, value):
    mode = normalize_delivery_mode(value)
    request.session[SESSION_KEY] = mode
    logger.debug(f"Delivery mode set to {mode}")
    return mode


def get_theme(mode):
    return dict(THEME_COLORS[normalize_delivery_mode(mode)])


def get_css_variables(mode):
    return {CSS_VARIABLES[key]: value for key, value in get_theme(mode).items()}


def render_theme_css():
    """
    One `:root[data-delivery="<mode>"]` block per mode. The default mode
    also styles a bare `:root` so an unset attribute falls back to it.
    """
    blocks = []
    for mode in DELIVERY_MODES:
        selector = f':root[{THEME_ATTRIBUTE}="{mode}"]'
        if mode == DEFAULT_DELIVERY_MODE:
            selector = f':root, {selector}'
        declarations = '\n'.join(
            f'  {name}: {value};' for name, value in get_css_variables(mode).items()
        )
        blocks.append(f'{selector} {{\n{declarations}\n}}')
    return '\n\n'.join(blocks) + '\n'


def filter_by_delivery(queryset, mode, prefix=''):
    """
    Keep rows whose delivery option for `mode` is enabled.

    `prefix` points at a related product, e.g. 'product__'.
    """
    field = DELIVERY_FIELD_MAP[normalize_delivery_mode(mode)]
    return queryset.filter(**{f'{prefix}{field}': True})


def product_supports_delivery(product, mode):
    return bool(getattr(product, DELIVERY_FIELD_MAP[normalize_delivery_mode(mode)]))
