"""
itemocr/cli/main.py: CLI entry point using Click

Commands:
- import-items items.json --db data/items.db - Load an item export into SQLite
- preprocess shot.png --out clean.png - Run the preprocessing pipeline only
- search 精金投斧 --top-k 5 - Fuzzy catalog lookup for a string
- read shot.png --json - Full pipeline: preprocess, recognize, match
- batch --dir shots/ --out matches.csv - Read every image in a directory
- whitelist - Print the catalog character whitelist
"""

import click
from pathlib import Path
from datetime import datetime
import json
import logging

from itemocr.config import LOG_LEVEL
from itemocr.errors import CatalogError, ImageDecodeError

# Setup logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.bmp'}


def catalog_options(func):
    """--catalog / --db / --name-field, shared by commands that need the catalog."""
    func = click.option('--name-field', default='tw', show_default=True,
                        help='Name field inside each JSON item')(func)
    func = click.option('--db', 'db_path', type=click.Path(dir_okay=False), default=None,
                        help='SQLite catalog (default: DATABASE_PATH)')(func)
    func = click.option('--catalog', 'catalog_json', type=click.Path(exists=True, dir_okay=False),
                        default=None, help='Item export JSON to use instead of the database')(func)
    return func


def _session_for(db_path):
    from sqlalchemy.orm import sessionmaker
    from itemocr.catalog.schema import SessionLocal, init_db, make_engine

    if db_path is None:
        init_db()
        return SessionLocal()

    engine = make_engine(Path(db_path))
    init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def load_catalog(catalog_json, db_path, name_field='tw'):
    """Catalog snapshot from a JSON export or the SQLite items table."""
    from itemocr.catalog.sources import JsonCatalogSource, SqlCatalogSource

    if catalog_json:
        return JsonCatalogSource(catalog_json, name_field=name_field).load_snapshot()

    db = _session_for(db_path)
    try:
        return SqlCatalogSource(db).load_snapshot()
    finally:
        db.close()


def _normalizer(use_opencc):
    if not use_opencc:
        return None
    from itemocr.matching.normalize import opencc_normalizer
    return opencc_normalizer('s2t')


def _build_reader(catalog, detect_region, lang, use_opencc):
    from itemocr.matching.cache import CatalogCache
    from itemocr.reader import ItemNameReader
    from itemocr.recognition.tesseract_service import TesseractRecognizer
    from itemocr.config import USE_CATALOG_WHITELIST

    cache = CatalogCache(normalizer=_normalizer(use_opencc))
    whitelist = cache.get_whitelist(catalog).tesseract_whitelist() if USE_CATALOG_WHITELIST else None

    recognizer = TesseractRecognizer(whitelist=whitelist)
    if not recognizer.is_available():
        raise click.ClickException("Tesseract is not available (install tesseract-ocr and chi_tra data)")

    return ItemNameReader(
        catalog,
        recognizer=recognizer,
        cache=cache,
        detect_region=detect_region,
        lang=lang,
    )


@click.group()
def cli():
    """Item name OCR lookup CLI"""
    pass


@cli.command('import-items')
@click.argument('json_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--db', 'db_path', type=click.Path(dir_okay=False), default=None,
              help='SQLite database to write (default: DATABASE_PATH)')
@click.option('--name-field', default='tw', show_default=True, help='Name field inside each JSON item')
@click.option('--batch-size', type=int, default=1000, show_default=True, help='Rows per commit')
def import_items(json_path, db_path, name_field, batch_size):
    """
    Import an item export JSON into the catalog table

    Example: import-items data/tw-items.json
    """
    from itemocr.catalog.sources import import_json_catalog

    logger.info(f"Importing items from {json_path}")
    db = _session_for(db_path)
    try:
        count = import_json_catalog(json_path, db, name_field=name_field, batch_size=batch_size)
    except CatalogError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    click.echo(f"Imported {count} items")


@cli.command()
@click.argument('image_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--out', 'output_path', required=True, type=click.Path(), help='Where to write the processed image')
@click.option('--scale', type=float, default=None, help='Upscale factor (default: ITEMOCR_IMAGE_SCALE)')
@click.option('--threshold', type=int, default=None, help='Fixed binarization threshold (disables Otsu)')
@click.option('--sharpen', type=click.Choice(['normal', 'strong']), default=None, help='Enable sharpening')
@click.option('--denoise', is_flag=True, help='Enable median filtering')
@click.option('--no-auto-crop', is_flag=True, help='Keep the full frame')
def preprocess(image_path, output_path, scale, threshold, sharpen, denoise, no_auto_crop):
    """
    Run the preprocessing pipeline on one image

    Example: preprocess shot.png --out clean.png --scale 6
    """
    from itemocr.preprocessing import PreprocessOptions, ImagePreprocessor, load_image, save_image

    overrides = {
        'image_scale': scale,
        'threshold': threshold,
        'enable_auto_threshold': False if threshold is not None else None,
        'enable_sharpen': True if sharpen else None,
        'sharpen_strength': sharpen,
        'enable_median_filter': True if denoise else None,
        'enable_auto_crop': False if no_auto_crop else None,
    }
    try:
        options = PreprocessOptions.from_overrides(overrides)
    except ValueError as e:
        raise click.BadParameter(str(e))

    try:
        image = load_image(image_path)
    except ImageDecodeError as e:
        raise click.ClickException(str(e))

    result = ImagePreprocessor(options).run(image)
    save_image(result.image, output_path)

    logger.info(f"Stages: {', '.join(result.stages_run)} ({result.processing_time:.3f}s)")
    click.echo(json.dumps(result.to_dict(), ensure_ascii=False))


@cli.command()
@click.argument('query')
@catalog_options
@click.option('--top-k', type=int, default=None, help='Maximum results (default: ITEMOCR_TOP_K)')
@click.option('--min-score', type=float, default=None, help='Score floor (default: ITEMOCR_MIN_SCORE)')
@click.option('--confidence', type=click.FloatRange(0, 100), default=None, help='Recognizer confidence 0-100')
@click.option('--opencc', 'use_opencc', is_flag=True, help='Normalize Simplified to Traditional with OpenCC')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON')
def search(query, catalog_json, db_path, name_field, top_k, min_score, confidence, use_opencc, as_json):
    """
    Fuzzy-search the catalog for a (possibly misrecognized) name

    Example: search 精金投釫 --confidence 40
    """
    from itemocr.matching.cache import CatalogCache
    from itemocr.matching.matcher import NameMatcher

    catalog = load_catalog(catalog_json, db_path, name_field)
    cache = CatalogCache(normalizer=_normalizer(use_opencc))
    matcher = NameMatcher(normalizer=cache.normalizer, whitelist=cache.get_whitelist(catalog))

    try:
        result = matcher.lookup(query, catalog, cache.get_index(catalog), top_k, min_score, confidence)
    except ValueError as e:
        raise click.BadParameter(str(e))

    if as_json:
        click.echo(result.to_json())
        return

    if not result.candidates:
        click.echo(f"No match for '{query}'")
        return

    for i, candidate in enumerate(result.candidates, 1):
        click.echo(f"{i}. {candidate.name} ({candidate.id})  score={candidate.score:.3f} [{candidate.match_type}]")


@cli.command()
@click.argument('image_path', type=click.Path(exists=True, dir_okay=False))
@catalog_options
@click.option('--detect-region', is_flag=True, help='Crop to the detected text region before recognition')
@click.option('--lang', default=None, help='Tesseract language (default: ITEMOCR_TESSERACT_LANG)')
@click.option('--opencc', 'use_opencc', is_flag=True, help='Normalize Simplified to Traditional with OpenCC')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON')
def read(image_path, catalog_json, db_path, name_field, detect_region, lang, use_opencc, as_json):
    """
    Read an item name from a screenshot and look it up

    Example: read tooltip.png --json
    """
    catalog = load_catalog(catalog_json, db_path, name_field)
    reader = _build_reader(catalog, detect_region, lang, use_opencc)
    try:
        result = reader.read(image_path)
    except ImageDecodeError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(result.to_json())
        return

    click.echo(f"Text: {result.text}")
    conf_str = f"{result.confidence:.1f}" if result.confidence is not None else "n/a"
    click.echo(f"Confidence: {conf_str}")
    if result.match_id is None:
        click.echo("No catalog match")
        return
    for i, candidate in enumerate(result.lookup.candidates[:5], 1):
        click.echo(f"{i}. {candidate.name} ({candidate.id})  score={candidate.score:.3f}")


@cli.command()
@click.option('--dir', 'scan_dir', required=True, type=click.Path(exists=True, file_okay=False),
              help='Directory containing screenshots')
@click.option('--out', 'output_csv', required=True, type=click.Path(), help='Output CSV path for matches')
@catalog_options
@click.option('--detect-region', is_flag=True, help='Crop to the detected text region before recognition')
@click.option('--lang', default=None, help='Tesseract language (default: ITEMOCR_TESSERACT_LANG)')
@click.option('--opencc', 'use_opencc', is_flag=True, help='Normalize Simplified to Traditional with OpenCC')
def batch(scan_dir, output_csv, catalog_json, db_path, name_field, detect_region, lang, use_opencc):
    """Read every screenshot in a directory into a CSV."""
    from tqdm import tqdm
    import csv

    scan_dir_path = Path(scan_dir)
    image_paths = sorted(p for p in scan_dir_path.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)
    if not image_paths:
        logger.error(f"No images found in {scan_dir}")
        return

    logger.info(f"Found {len(image_paths)} images to process")

    catalog = load_catalog(catalog_json, db_path, name_field)
    reader = _build_reader(catalog, detect_region, lang, use_opencc)

    start_time = datetime.now()
    rows = []
    for img_path in tqdm(image_paths, desc="Reading images"):
        result = reader.read_batch([img_path])[0]
        best = result.lookup.best if result.lookup else None
        rows.append({
            'image_path': str(img_path),
            'text': result.text,
            'confidence': result.confidence,
            'item_id': best.id if best else None,
            'item_name': best.name if best else None,
            'score': round(best.score, 4) if best else None,
            'status': 'error' if result.error else ('matched' if best else 'no_match'),
        })

    output_path = Path(output_csv)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)

    duration = (datetime.now() - start_time).total_seconds()
    num_matched = sum(1 for r in rows if r['status'] == 'matched')
    logger.info(f"Batch completed: {num_matched}/{len(rows)} matched in {duration:.1f}s")
    click.echo(f"Wrote {len(rows)} rows to {output_path}")


@cli.command()
@catalog_options
def whitelist(catalog_json, db_path, name_field):
    """Print the catalog character whitelist (tessedit_char_whitelist)."""
    from itemocr.matching.whitelist import build_whitelist

    catalog = load_catalog(catalog_json, db_path, name_field)
    profile = build_whitelist(catalog)
    logger.info(f"{len(profile)} characters, {len(profile.bigrams)} bigrams, {len(profile.trigrams)} trigrams")
    click.echo(profile.tesseract_whitelist())


if __name__ == '__main__':
    cli()
