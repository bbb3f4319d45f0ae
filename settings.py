# -*- coding: utf-8 -*-
"""
Resolved run configuration.
"""

import getpass
from dataclasses import dataclass

import config_data


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    mailbox: str = config_data.inbox
    username: str = ""
    password: str = ""
    template: str = config_data.default_template
    poll_timeout: float = 0.0
    no_tls: bool = False
    verbose: int = 0
    once: bool = False


def split_server(server, no_tls=False):
    """
    Split "host" or "host:port" into (host, port).

    The port defaults to the IMAPS port, or the plain IMAP port when TLS
    is disabled.
    """
    host, sep, port = server.rpartition(":")
    if not sep or not port.isdigit():
        default = config_data.plain_port if no_tls else config_data.tls_port
        return server.strip("[]"), default
    return host.strip("[]"), int(port)


def get_credential(value, username, prompt="Password: "):
    """
    Return the password, prompting for it when a username was given
    without one.
    """
    if value or not username:
        return value
    return getpass.getpass(prompt)


def load_template(path=None):
    """Read the template file, or fall back to the built-in template."""
    if path is None:
        return config_data.default_template
    with open(path, encoding="utf-8") as f:
        return f.read()
