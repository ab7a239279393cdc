import argparse
import os
import sys

# Ensure project root is in path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from urbanglow.config import PipelineConfig
from urbanglow.ee_backend import EarthEngineBackend
from urbanglow.errors import UrbanGlowError
from urbanglow.exporter import DriveVideoRenderService
from urbanglow.region import RegionLoader
from urbanglow.service import UrbanGlowPipeline


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Export a nighttime lights + buildings growth animation")
    where = parser.add_mutually_exclusive_group(required=True)
    where.add_argument("--bbox", nargs=4, type=float, metavar=("WEST", "SOUTH", "EAST", "NORTH"))
    where.add_argument("--boundary", help="Boundary file (gpkg, shp, geojson, zip)")
    parser.add_argument("--name-col", help="Column used to pick features from --boundary")
    parser.add_argument("--name", help="Value of --name-col to keep")
    parser.add_argument("--config", help="JSON file with configuration overrides")
    parser.add_argument("--project", help="Google Cloud project ID for Earth Engine")
    parser.add_argument("--preview", action="store_true", help="Print a map tile URL for the last year instead of exporting")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = PipelineConfig.from_json(args.config) if args.config else PipelineConfig()

    backend = EarthEngineBackend(project_id=args.project)
    pipeline = UrbanGlowPipeline(backend, DriveVideoRenderService(), config)

    try:
        if args.preview:
            frame = pipeline.preview()
            print(f"Preview {frame.year}: {backend.tile_url(frame.image)}")
            return 0

        if args.bbox:
            region = RegionLoader.from_bbox(args.bbox)
        else:
            region = RegionLoader.from_file(args.boundary, name_col=args.name_col, name=args.name)

        print(f"Initializing task for {len(config.years)} years...")
        task = pipeline.build_export_task(region)
    except (UrbanGlowError, ValueError) as e:
        print(f"FAILED: {e}")
        return 1

    print(f"SUCCESS: Export task '{task.name}' created (id={pipeline.last_job_id}).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
