"""CLI for probe-based chart digitization."""

import json
import sys
from pathlib import Path

import click

from probe_digitizer.models import ProcessingError
from probe_digitizer.pipeline import JobOutput, run_job


def _report(result: JobOutput, verbose: bool) -> None:
    for w in result.warnings:
        click.echo(f"  Warning: {w}", err=True)
    for e in result.errors:
        click.echo(f"  [{e.stage.value}] {e.message}", err=True)
    if not verbose:
        return
    click.echo(f"  {len(result.probes)} probes x {len(result.labels)} labels")
    for probe in result.probes:
        for w in probe.warnings:
            if not w.startswith("I_"):
                click.echo(f"  {probe.id} @ x={probe.x_data:g}: {w}", err=True)


@click.command()
@click.argument("jobs", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output JSON file (single job)")
@click.option("--output-dir", type=click.Path(path_type=Path), help="Output directory (batch mode)")
@click.option(
    "--mask",
    type=click.Path(exists=True, path_type=Path),
    help="Highlight mask image (RGBA, same size as the chart)",
)
@click.option(
    "--strategy",
    type=click.Choice(["separated", "sorted"]),
    default=None,
    help="Row assignment strategy (overrides the job file)",
)
@click.option("--clear-manual", is_flag=True, help="Drop manual overrides before detecting")
@click.option("--overlay", type=click.Path(path_type=Path), help="Write a debug overlay PNG (single job)")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def main(
    jobs: tuple[Path, ...],
    output: Path | None,
    output_dir: Path | None,
    mask: Path | None,
    strategy: str | None,
    clear_manual: bool,
    overlay: Path | None,
    verbose: bool,
) -> None:
    """Detect curve values at every probe of each JOB file."""
    if not jobs:
        click.echo("Error: No job files provided", err=True)
        sys.exit(1)

    batch = len(jobs) > 1 or output_dir is not None

    if batch and (output or overlay):
        click.echo("Error: Use --output-dir for batch processing (no --output/--overlay)", err=True)
        sys.exit(1)

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)

    success_count = 0
    fail_count = 0

    for job_path in jobs:
        if verbose:
            click.echo(f"Processing: {job_path}")

        result = run_job(
            job_path,
            mask_path=mask,
            strategy=strategy,  # type: ignore[arg-type]
            clear_manual=clear_manual,
            overlay_path=overlay,
        )
        if isinstance(result, ProcessingError):
            fail_count += 1
            click.echo(f"Error processing {job_path}: [{result.stage.value}] {result.message}", err=True)
            continue

        if batch:
            out_path = (output_dir or job_path.parent) / f"{job_path.stem}.out.json"
        else:
            out_path = output or Path(f"{job_path.stem}.out.json")

        out_path.write_text(json.dumps(result.model_dump(mode="json"), indent=2))
        if verbose:
            click.echo(f"  Output: {out_path}")
        _report(result, verbose)

        if any(not e.recoverable for e in result.errors):
            fail_count += 1
        else:
            success_count += 1

    if batch:
        click.echo(
            f"Processed {success_count + fail_count} jobs: "
            f"{success_count} success, {fail_count} failed"
        )

    if fail_count > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
