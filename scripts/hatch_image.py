"""Hatch an image into plotter G-code and an SVG preview.

Runs the full pipeline once, synchronously:
    1. Load hatch job config (hatch_job.v1) and machine config
    2. Load the image and fit it inside the canvas (aspect kept, white fill)
    3. Trace every enabled channel (HatchScheduler.run)
    4. Order toolpaths, build the motion program, render G-code + SVG
    5. Write artifacts atomically

CLI:
    python scripts/hatch_image.py --input photo.png --output out/
    python scripts/hatch_image.py --input photo.png --output out/ \\
                                  --config configs/hatch_job_v1.yaml \\
                                  --machine robot_control/configs/machine.yaml \\
                                  --per-channel

Output structure:
    <output_dir>/
        <stem>.svg, <stem>.gcode               (combined)
        <stem>_<C|M|Y|K>.svg, ..._<ch>.gcode   (--per-channel)
        <stem>_intensity_<ch>.png              (--save-intensity)
        <stem>_manifest.yaml

Used by:
    - CLI: manual plotting jobs
    - tests: hatch_main callable
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from robot_control.configs.loader import ConfigError, load_config
from robot_control.planning.export import compile_combined, compile_per_channel
from src.data_pipeline.preprocess import fit_to_canvas, load_raster
from src.data_pipeline.scheduler import HatchScheduler, RunState
from src.utils import fs, hashing, logging_config, validators

logger = logging.getLogger(__name__)

DEFAULT_JOB_CONFIG = "configs/hatch_job_v1.yaml"


def hatch_main(
    input_path: str,
    output_dir: str,
    job_cfg_path: str = DEFAULT_JOB_CONFIG,
    machine_cfg_path: Optional[str] = None,
    per_channel: bool = False,
    include_travel: bool = False,
    save_intensity: bool = False,
) -> Dict[str, Any]:
    """Hatch one image and write its plot artifacts.

    Parameters
    ----------
    input_path : str
        Image file (anything Pillow decodes)
    output_dir : str
        Created if missing
    job_cfg_path : str
        hatch_job.v1 YAML
    machine_cfg_path : str, optional
        machine.yaml; ``None`` uses the packaged default
    per_channel : bool
        One G-code/SVG pair per channel instead of a combined pair
    include_travel : bool
        Add the pen-up travel group to the SVG preview
    save_intensity : bool
        Also write each channel's intensity map as a grayscale PNG

    Returns
    -------
    Dict[str, Any]
        ``status`` (RunStatus), ``line_counts`` per channel, ``files``
        written, ``stats`` per artifact key, ``manifest_path``

    Raises
    ------
    FileNotFoundError
        If the image or a config file is missing
    ValueError
        If the hatch job config is invalid
    robot_control.configs.loader.ConfigError
        If the machine config is invalid
    """
    job = validators.load_hatch_job_config(job_cfg_path)
    machine = load_config(machine_cfg_path)

    raster = fit_to_canvas(load_raster(input_path), job.canvas)
    logger.info(f"Raster {raster.width}×{raster.height} px for {job.canvas.width_mm}×{job.canvas.height_mm} mm")

    scheduler = HatchScheduler(job, raster)
    status = scheduler.run()
    results = scheduler.results()

    out_dir = fs.ensure_dir(output_dir)
    stem = Path(input_path).stem
    files = []
    stats = {}

    if status.state is RunState.DONE and save_intensity:
        for ch in results:
            png = fs.channel_artifact_path(out_dir / f"{stem}_intensity.png", ch)
            fs.atomic_save_intensity_map(scheduler.intensity_map(ch), png)
            files.append(png)

    if status.state is RunState.DONE:
        if per_channel:
            artifacts = compile_per_channel(results, job, machine, include_travel)
        else:
            artifacts = {None: compile_combined(results, job, machine, include_travel)}

        for ch, art in artifacts.items():
            base = out_dir / f"{stem}.gcode"
            gcode_path = base if ch is None else fs.channel_artifact_path(base, ch)
            svg_path = gcode_path.with_suffix(".svg")
            fs.atomic_write_text(gcode_path, art.gcode)
            fs.atomic_write_text(svg_path, art.svg)
            files.extend([gcode_path, svg_path])
            stats[ch or "combined"] = art.stats
            logger.info(f"Wrote {gcode_path.name} and {svg_path.name}")
    else:
        logger.warning(f"Nothing written: run {status.state.name.lower()} ({status.message})")

    manifest_path = out_dir / f"{stem}_manifest.yaml"
    fs.atomic_yaml_dump({
        "input": str(input_path),
        "input_sha256": hashing.sha256_file(input_path),
        "job": job.model_dump(mode="json", by_alias=True),
        "run": {"state": status.state.name, "message": status.message},
        "line_counts": scheduler.line_counts(),
        "stats": {
            key: {
                "segments": s.segments,
                "draw_mm": round(s.draw_mm, 3),
                "drag_mm": round(s.drag_mm, 3),
                "travel_mm": round(s.travel_mm, 3),
                "pen_lifts": s.pen_lifts,
                "pen_drops": s.pen_drops,
            }
            for key, s in stats.items()
        },
        "files": [p.name for p in files],
    }, manifest_path)

    return {
        "status": status,
        "line_counts": scheduler.line_counts(),
        "files": files,
        "stats": stats,
        "manifest_path": manifest_path,
    }


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Hatch an image into pen-plotter G-code and an SVG preview"
    )
    parser.add_argument(
        "--input",
        type=str,
        required=True,
        help="Path to the source image (PNG/JPEG/...)",
    )
    parser.add_argument(
        "--output",
        type=str,
        required=True,
        help="Output directory for artifacts",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=DEFAULT_JOB_CONFIG,
        help="Path to hatch job config",
    )
    parser.add_argument(
        "--machine",
        type=str,
        default=None,
        help="Path to machine config (default: packaged machine.yaml)",
    )
    parser.add_argument(
        "--per-channel",
        action="store_true",
        help="Write one G-code/SVG pair per channel",
    )
    parser.add_argument(
        "--show-travel",
        action="store_true",
        help="Include pen-up travel moves in the SVG preview",
    )
    parser.add_argument(
        "--save-intensity",
        action="store_true",
        help="Write per-channel intensity maps as PNG",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional log file (JSON lines)",
    )

    args = parser.parse_args()

    logging_config.setup_logging(
        log_level=args.log_level,
        log_file=args.log_file,
        json=args.log_file is not None,
        context={"app": "hatch"},
    )
    logging_config.install_excepthook()

    try:
        result = hatch_main(
            input_path=args.input,
            output_dir=args.output,
            job_cfg_path=args.config,
            machine_cfg_path=args.machine,
            per_channel=args.per_channel,
            include_travel=args.show_travel,
            save_intensity=args.save_intensity,
        )
    except (FileNotFoundError, ValueError, ConfigError) as exc:
        logger.error(str(exc))
        sys.exit(1)
    finally:
        logging_config.shutdown()

    print("\n=== Hatch Complete ===")
    print(f"Run: {result['status'].state.name} ({result['status'].message})")
    for ch, n in result["line_counts"].items():
        print(f"  {ch}: {n} lines")
    for path in result["files"]:
        print(f"Wrote: {path}")
    print(f"Manifest: {result['manifest_path']}")


if __name__ == "__main__":
    main()
