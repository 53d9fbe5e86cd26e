"""CLI commands for keyshift.

The CLI is built using Click with the entry point ``keyshift``
(keyshift.main). It is a thin caller: every command builds or receives a
CredentialContext and delegates to the router or the migration engine.

Key Commands:
    credentials (keyshift.cli.credentials):
        Store, read, remove, list and validate provider credentials, and
        print shell commands that persist environment-backed ones.

    migrate (keyshift.cli.migrate):
        Inspect and run the move of legacy settings-stored credentials to
        environment variables; list and restore migration backups.

Usage Examples:
    $ keyshift credentials set anthropic
    $ keyshift credentials list
    $ keyshift migrate status zai
    $ keyshift migrate run zai --yes
"""
