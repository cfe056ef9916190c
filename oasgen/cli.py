"""Command-line entry point: ``oasgen generate SPEC -o DIR``."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from .config import ROUTER_STRATEGIES, build_config, load_config
from .errors import OasgenError, StrictModeError
from .generator import GenerateResult, generate
from .loader import load_document
from .render import write_files

logger = logging.getLogger(__name__)


def _on(flag: bool) -> bool | None:
    """Flag given -> True, absent -> None (leave the config file value)."""
    return True if flag else None


def _off(flag: bool) -> bool | None:
    return False if flag else None


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _report(result: GenerateResult) -> None:
    for issue in result.issues:
        click.echo(str(issue), err=True)


@click.group()
@click.version_option(package_name="oasgen")
def main():
    """oasgen: generate Go clients and servers from OpenAPI and Swagger documents."""


@main.command(name="generate")
@click.argument("spec")
@click.option("-o", "--output", required=True, type=click.Path(file_okay=False, path_type=Path),
              help="Directory for the generated files.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="YAML config file; command-line options override it.")
@click.option("-p", "--package", "package_name", default=None, help="Go package name.")
@click.option("--client", is_flag=True, help="Generate the HTTP client.")
@click.option("--server", is_flag=True, help="Generate the server scaffold.")
@click.option("--no-types", is_flag=True, help="Skip type declarations.")
@click.option("--no-readme", is_flag=True, help="Skip README.md.")
@click.option("--no-pointers", is_flag=True, help="Do not wrap optional fields in pointers.")
@click.option("--no-validation", is_flag=True, help="Omit validate struct tags.")
@click.option("--no-info", is_flag=True, help="Drop info-level issues from the report.")
@click.option("--strict", is_flag=True, help="Fail on critical issues and warnings.")
@click.option("--no-security", is_flag=True, help="Skip authentication helpers.")
@click.option("--oauth2-flows", is_flag=True, help="Generate OAuth2 flow clients.")
@click.option("--credential-mgmt", is_flag=True, help="Generate credential providers.")
@click.option("--oidc-discovery", is_flag=True, help="Generate the OIDC discovery client.")
@click.option("--security-enforce", is_flag=True, help="Generate security enforcement metadata.")
@click.option("--server-all", is_flag=True, help="Enable every server extension (stdlib router).")
@click.option("--server-responses", is_flag=True, help="Generate typed response writers.")
@click.option("--server-binder", is_flag=True, help="Generate the request binder.")
@click.option("--server-middleware", is_flag=True, help="Generate validation middleware.")
@click.option("--server-stubs", is_flag=True, help="Generate the stub server.")
@click.option("--server-router", type=click.Choice(ROUTER_STRATEGIES), default=None,
              help="Generate a router.")
@click.option("--max-lines", type=click.IntRange(min=0), default=None, help="Split threshold: lines per file.")
@click.option("--max-types", type=click.IntRange(min=0), default=None, help="Split threshold: types per file.")
@click.option("--max-operations", type=click.IntRange(min=0), default=None,
              help="Split threshold: operations per file.")
@click.option("--no-gofmt", is_flag=True, help="Write Go files without running gofmt.")
@click.option("--user-agent", default=None, help="User-Agent for fetching SPEC over HTTP.")
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug).")
def generate_command(spec, output, config_path, package_name, client, server, no_types, no_readme, no_pointers,
                     no_validation, no_info, strict, no_security, oauth2_flows, credential_mgmt, oidc_discovery,
                     security_enforce, server_all, server_responses, server_binder, server_middleware,
                     server_stubs, server_router, max_lines, max_types, max_operations, no_gofmt, user_agent, verbose):
    """Generate Go code from SPEC, a file path or an http(s) URL."""
    _configure_logging(verbose)
    overrides = {
        "package_name": package_name,
        "generate_client": _on(client),
        "generate_server": _on(server),
        "generate_types": _off(no_types),
        "generate_readme": _off(no_readme),
        "use_pointers": _off(no_pointers),
        "include_validation": _off(no_validation),
        "include_info": _off(no_info),
        "strict_mode": _on(strict),
        "generate_security": _off(no_security),
        "generate_oauth2_flows": _on(oauth2_flows),
        "generate_credential_mgmt": _on(credential_mgmt),
        "generate_oidc_discovery": _on(oidc_discovery),
        "generate_security_enforce": _on(security_enforce),
        "server_all": _on(server_all),
        "server_responses": _on(server_responses),
        "server_binder": _on(server_binder),
        "server_middleware": _on(server_middleware),
        "server_stubs": _on(server_stubs),
        "server_router": server_router,
        "max_lines_per_file": max_lines,
        "max_types_per_file": max_types,
        "max_operations_per_file": max_operations,
    }
    try:
        config = load_config(config_path, **overrides) if config_path else build_config(**overrides)
        loaded = load_document(spec, user_agent=user_agent)
        click.echo(f"Loaded {loaded.source} ({loaded.format}, {loaded.size} bytes)")
        result = generate(loaded.data, config, source_map=loaded.source_map)
    except StrictModeError as exc:
        _report(exc.result)
        raise click.ClickException(str(exc)) from exc
    except OasgenError as exc:
        raise click.ClickException(str(exc)) from exc

    _report(result)
    written = write_files(result, output, format_go=not no_gofmt)
    click.echo(
        f"Generated {len(written)} files in {output} "
        f"({result.operation_count} operations, {result.type_count} types, "
        f"{result.critical_count} critical, {result.warning_count} warnings, "
        f"{result.generate_time:.2f}s)"
    )
