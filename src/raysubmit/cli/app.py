# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from raysubmit.config.loader import prepare_submission
from raysubmit.config.models import SubmitOptions
from raysubmit.config.settings import load_submit_settings
from raysubmit.errors import RaySubmitError
from raysubmit.k8s.client import RayApi
from raysubmit.k8s.tunnel import PortForwardTunnel
from raysubmit.logging.log import DEFAULT_LOG_DIR, init_logging
from raysubmit.observers.console import ConsoleObserver
from raysubmit.observers.dispatcher import EventBus
from raysubmit.observers.jsonfile import JsonFileObserver
from raysubmit.observers.logger import LoggerObserver
from raysubmit.submit.orchestrator import SubmissionOrchestrator


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Submit Ray jobs to KubeRay clusters through a RayJob CR")
job_app = typer.Typer(help="Ray job commands")
app.add_typer(job_app, name="job")

SUBMIT_HELP = """
Submit ray job to ray cluster as one would using ray CLI e.g. 'ray job submit ENTRYPOINT'.
Supports all options that 'ray job submit' supports, except '--address'.

Applies the RayJob CR (submissionMode must be InteractiveMode), waits for its
RayCluster, port-forwards the dashboard and runs 'ray job submit' against it.

\b
Examples:
  raysubmit job submit -f rayjob.yaml --working-dir /path/to/working-dir/ -- python my_script.py
  raysubmit job submit -f rayjob.yaml --runtime-env path/to/runtimeEnv.yaml -- python my_script.py
"""


def _fail(exc: Exception) -> None:
    typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@job_app.command("submit", help=SUBMIT_HELP)
def submit(
    entrypoint: List[str] = typer.Argument(..., help="Entrypoint command, after --"),
    filename: Path = typer.Option(..., "--filename", "-f", help="Path and name of the Ray Job YAML file"),
    submission_id: Optional[str] = typer.Option(None, "--submission-id", help="ID to specify for the ray job. If not provided, one will be generated"),
    runtime_env: Optional[Path] = typer.Option(None, "--runtime-env", help="Path and name to the runtime env YAML file."),
    working_dir: Optional[str] = typer.Option(None, "--working-dir", help="Directory containing files that your job will run in"),
    headers: Optional[str] = typer.Option(None, "--headers", help="Headers passed through http/s to the Ray cluster, JSON formatted"),
    runtime_env_json: Optional[str] = typer.Option(None, "--runtime-env-json", help="JSON-serialized runtime_env dictionary. Precedence over ray job CR."),
    verify: Optional[str] = typer.Option(None, "--verify", help="Verify the server's TLS certificate, or a path to trusted certificates"),
    entrypoint_resources: Optional[str] = typer.Option(None, "--entrypoint-resources", help="JSON-serialized dictionary mapping resource name to resource quantity"),
    metadata_json: Optional[str] = typer.Option(None, "--metadata-json", help="JSON-serialized dictionary of metadata to attach to the job."),
    log_style: Optional[str] = typer.Option(None, "--log-style", help="auto | record | pretty"),
    log_color: Optional[str] = typer.Option(None, "--log-color", help="auto | false | true"),
    entrypoint_num_cpus: float = typer.Option(0.0, "--entrypoint-num-cpus", help="Number of CPUs reserved for the entrypoint command"),
    entrypoint_num_gpus: float = typer.Option(0.0, "--entrypoint-num-gpus", help="Number of GPUs reserved for the entrypoint command"),
    entrypoint_memory: int = typer.Option(0, "--entrypoint-memory", help="Amount of memory reserved for the entrypoint command"),
    no_wait: bool = typer.Option(False, "--no-wait", help="Do not stream logs and wait for the job to finish"),
    namespace: str = typer.Option("default", "--namespace", "-n", help="Namespace for the RayJob"),
    kube_context: Optional[str] = typer.Option(None, "--context", help="Kube context to use"),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig", help="Path to the kubeconfig file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and event trace on the console"),
):
    options = SubmitOptions(
        filename=str(filename),
        entrypoint=" ".join(entrypoint),
        submission_id=submission_id,
        runtime_env=str(runtime_env) if runtime_env else None,
        runtime_env_json=runtime_env_json,
        working_dir=working_dir,
        headers=headers,
        verify=verify,
        entrypoint_resources=entrypoint_resources,
        metadata_json=metadata_json,
        log_style=log_style,
        log_color=log_color,
        entrypoint_num_cpus=entrypoint_num_cpus,
        entrypoint_num_gpus=entrypoint_num_gpus,
        entrypoint_memory=entrypoint_memory,
        no_wait=no_wait,
        namespace=namespace or "default",
        kube_context=kube_context,
        kubeconfig=kubeconfig,
    )

    # 1) Everything that can fail without touching the cluster
    try:
        settings = load_submit_settings()
        prepared = prepare_submission(options)
        api = RayApi.from_kubeconfig(kube_context=kube_context, kubeconfig=kubeconfig)
    except RaySubmitError as exc:
        _fail(exc)

    # 2) Logging + observers
    logger, run_id, log_path = init_logging(verbose=verbose)
    observers = [
        LoggerObserver(logger),
        JsonFileObserver(DEFAULT_LOG_DIR / f"{run_id}.jsonl"),
    ]
    if verbose:
        observers.append(ConsoleObserver())

    tunnel = PortForwardTunnel(
        namespace=prepared.namespace,
        kube_context=kube_context,
        kubeconfig=kubeconfig,
        kubectl=settings.kubectl_bin,
        probe_timeout=settings.probe_timeout,
    )
    orchestrator = SubmissionOrchestrator(
        api,
        tunnel,
        settings,
        bus=EventBus(observers),
        run_id=run_id,
        kube_context=kube_context,
    )

    # 3) Submit
    try:
        result = orchestrator.run(prepared)
    except RaySubmitError as exc:
        logger.debug("submission failed", exc_info=True)
        typer.echo(f"Log file: {log_path}", err=True)
        _fail(exc)

    typer.secho(
        f"Ray job {result.job_id} finished (RayJob {prepared.namespace}/{result.job_name}, "
        f"cluster {result.cluster_name})",
        fg=typer.colors.GREEN,
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
