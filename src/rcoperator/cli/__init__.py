import json

import typer
from typing_extensions import Annotated

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv())

app = typer.Typer(
    help="rcoperator: Kubernetes operator for RuntimeComponent and RuntimeOperation resources",
    add_completion=False,
)


@app.command("operator")
def run_operator():
    """Run the Kubernetes operator (connects to cluster)."""
    from rcoperator.main import main

    main()


@app.command("show-config")
def show_config(
    from_cluster: Annotated[
        bool,
        typer.Option("--from-cluster", help="Read the operator ConfigMap from the cluster"),
    ] = False,
):
    """Print the effective operator configuration."""
    from rcoperator.config import (
        ConfigMapSource,
        OperatorConfig,
        get_operator_name,
        get_operator_namespace,
        get_watch_namespaces,
    )

    if from_cluster:
        from rcoperator.main import load_kubernetes_config

        load_kubernetes_config()
        config = ConfigMapSource().load()
    else:
        config = OperatorConfig()

    typer.echo(f"Operator name: {get_operator_name()}")
    typer.echo(f"Operator namespace: {get_operator_namespace()}")
    typer.echo(f"Watch namespaces: {', '.join(get_watch_namespaces()) or '(all)'}")
    typer.echo(json.dumps(config.to_config_map_data(), indent=2))


@app.command("list-models")
def list_models():
    """List the registered CRD models."""
    import rcoperator.models  # noqa: F401
    from rcoperator.crd.registry import CRDRegistry

    models = CRDRegistry().get_all_models()
    typer.echo(f"Registered {len(models)} CRD models")
    for key, info in models.items():
        typer.echo(f"  - {key} ({info['plural']})")


@app.command("generate-crds")
def generate_crds(
    output: Annotated[
        str, typer.Option("-o", "--output", help="Output directory")
    ] = "crds/generated",
):
    """Generate CRD YAML files from the pydantic models."""
    import rcoperator.models  # noqa: F401
    from rcoperator.crd.generator import CRDManager

    try:
        filenames = CRDManager(output_dir=output).generate_all_crds()
    except (OSError, ValueError) as e:
        typer.echo(f"Failed to generate CRDs: {e}")
        raise typer.Exit(1)

    typer.echo(f"Generated {len(filenames)} CRDs in {output}")
