#!/usr/bin/env python3
"""
Main entry point for Film Look Pipeline

This script demonstrates how to use the pipeline to apply a film preset to a
directory of captures while keeping their metadata.
"""

import os
import json
import logging
from pathlib import Path

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

from filmlook.enums import FilmPreset
from filmlook.pipeline import FilmPipeline, create_default_config


def main():
    """Main function to run the Film Look Pipeline"""

    # Create default configuration if it doesn't exist
    if not os.path.exists('config.json'):
        logger.info("Creating default configuration file...")
        config = create_default_config()
        logger.info("Default configuration created: config.json")
    else:
        logger.info("Using existing configuration file: config.json")
        with open('config.json', 'r') as f:
            config = json.load(f)

    lut_directory = Path(config.get("lut_directory", "luts"))
    if not lut_directory.exists() or not any(lut_directory.glob("*.cube")):
        logger.warning(f"No .cube files found in: {lut_directory}")
        lut_directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Place the film LUTs (e.g. {FilmPreset.KODAK_PORTRA_400.lut_resource_name}.cube) in: {lut_directory}")
        return

    preset = FilmPreset.from_name(os.environ.get("FILM_PRESET", FilmPreset.KODAK_PORTRA_400.value))

    try:
        logger.info("Initializing Film Look Pipeline...")
        pipeline = FilmPipeline.from_file('config.json')
        logger.info("Pipeline initialized successfully!")

        input_path = "./data/input"  # Directory containing captures
        output_path = "./data/output"  # Directory for processed captures

        if not os.path.exists(input_path):
            logger.warning(f"Input directory does not exist: {input_path}")
            Path(input_path).mkdir(parents=True, exist_ok=True)
            logger.info(f"Please place your photos in: {input_path}")
            logger.info("Then run this script again.")
            return

        logger.info(f"Applying {preset.display_name} (ISO {preset.iso:.0f})")
        logger.info(f"Input: {input_path}")
        logger.info(f"Output: {output_path}")

        results = pipeline.process_directory(input_path, output_path, preset)
        pipeline.shutdown()

        print("\n" + "=" * 50)
        print("PROCESSING RESULTS:")
        print("=" * 50)
        print(json.dumps(results, indent=2))

        if results["processed"] > 0:
            print(f"\n✅ Successfully processed {results['processed']} image(s)")
            print(f"📁 Output saved to: {output_path}")
            if results["metadata_lost"]:
                print(f"⚠️  {results['metadata_lost']} image(s) were written without their original metadata")
            print(f"\n⏱️  Total processing time: {results['processing_time']:.2f} seconds")
        else:
            print(f"\n❌ No images were successfully processed")
            print(f"💡 Check the logs above for detailed error information")

        if results["fallback_written"]:
            print(f"↩️  {results['fallback_written']} original(s) kept as fallback")

    except Exception as e:
        logger.error(f"Pipeline execution failed: {e}")
        import traceback
        logger.error(f"Traceback: {traceback.format_exc()}")


if __name__ == "__main__":
    main()
