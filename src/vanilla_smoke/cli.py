import logging
import sys

import click

from vanilla_smoke.cases import smoke
from vanilla_smoke.client import ApiTestClient
from vanilla_smoke.exceptions import SmokeClientError
from vanilla_smoke.settings import load_settings
from vanilla_smoke.suite import SuiteContext


@click.group()
def cli():
    """Vanilla smoke tests - run end-to-end checks against a live forum."""


@cli.command()
@click.option("--base-url", "-b", help="Forum URL (VANILLA_BASE_URL)")
@click.option("--database-url", "-d", help="SQLAlchemy URL of the forum database (VANILLA_DATABASE_URL)")
@click.option("--config-path", type=click.Path(dir_okay=False), help="Forum config file (VANILLA_CONFIG_PATH)")
@click.option("--cookie-salt", help="Cookie salt of the forum (VANILLA_COOKIE_SALT)")
@click.option("--env-file", type=click.Path(exists=True, dir_okay=False), help=".env file to load")
@click.option(
    "--profile",
    envvar="VANILLA_SMOKE_PROFILE",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML profile with settings",
)
@click.option("--case", "cases", multiple=True, help="Run only this case and its dependencies (repeatable)")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write JSON results to this file")
@click.option(
    "--restore-config/--keep-config",
    default=False,
    show_default=True,
    help="Restore the forum config file after the run",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every request")
def run(base_url, database_url, config_path, cookie_salt, env_file, profile, cases, output, restore_config, verbose):
    """Run the smoke suite."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(
            env_file=env_file,
            profile=profile,
            base_url=base_url,
            database_url=database_url,
            config_path=config_path,
            cookie_salt=cookie_salt,
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    click.echo(f"Forum: {settings.base_url}")

    with ApiTestClient.from_settings(settings) as api:
        try:
            report = smoke.run(SuiteContext(api), only=cases or None)
        except SmokeClientError as e:
            raise click.ClickException(str(e))
        finally:
            if restore_config and api.restore_config():
                click.echo("Restored forum config.")

    click.echo()
    for line in report.summary_lines():
        click.echo(line)

    if output:
        path = report.save_results(output)
        click.echo(f"Results saved to: {path}")

    sys.exit(0 if report.failed == 0 else 1)


@cli.command(name="list")
@click.option("--case", "cases", multiple=True, help="Show only this case and its dependencies")
def list_cases(cases):
    """Show the cases in execution order."""
    try:
        order = smoke.execution_order(cases or None)
    except SmokeClientError as e:
        raise click.ClickException(str(e))

    for idx, case in enumerate(order, 1):
        click.echo(f"{idx:2d}. {case.name}")
        if case.description:
            click.echo(f"      {case.description}")
        if case.depends:
            click.echo(f"      depends on: {', '.join(case.depends)}")
        if case.expects:
            click.echo(f"      expects: {case.expects.describe()}")


if __name__ == '__main__':
    cli()
