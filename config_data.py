# -*- coding: utf-8 -*-
"""
Configuration data: defaults, limits, and the built-in template.
Pure data only - no functions, no side effects at import time.
"""

version = "0.9.1"

# ============================================================================
# SERVER SETTINGS
# ============================================================================

inbox = "INBOX"

tls_port = 993
plain_port = 143

username_env = "IMAPPIPE_USERNAME"
password_env = "IMAPPIPE_PASSWORD"

# ============================================================================
# LOOP SETTINGS
# ============================================================================

# Fetched messages waiting for extraction; the producer blocks beyond this
fetch_queue_size = 10

# Pending updates between the wait thread and the notifier
update_queue_size = 64

# RFC 2177: clients should re-issue IDLE at least every 29 minutes
idle_renew_interval = 29 * 60 - 1

# Granularity at which a blocking IDLE checks its stop signal
idle_stop_check = 1.0

# ============================================================================
# LOGGING
# ============================================================================

log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# ============================================================================
# DEFAULT TEMPLATE
# ============================================================================

default_template = """\
Date: {{ Header.Date }}
From: {{ join(", ", Header.From) }}
To: {{ join(", ", Header.To) }}
Subject: {{ Header.Subject }}
{% for body in Body %}
{% if re("<[a-zA-Z][^>]*>", body) %}{{ strip(body) }}{% else %}{{ body }}{% endif %}
{% endfor %}
{%- for attachment in Attachment %}
Attachment: {{ attachment.Name }}
{% endfor %}
"""
