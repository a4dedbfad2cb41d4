"""grantflow -- OAuth2 client-side proxy for authorization-code and device-code grants.

The package drives both grant flows against a remote authorization server,
protects the authorization-code round trip with an encrypted, nonce-bound
``state`` parameter, and persists access/refresh tokens through pluggable
storage providers.

Typical usage::

    from grantflow.flows import AuthorizationCodeFlow, GrantExchanger

    exchanger = GrantExchanger(config, storage, secure_storage, encryption)
    flow = AuthorizationCodeFlow(exchanger)
    url = flow.start(["identity.readonly"])

Modules:
    app: Typer CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and credential resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    transport: Outbound HTTP transport.
    providers: Config, storage, and encryption providers.
    flows: The grant flows.
"""

__version__ = "0.1.0"
