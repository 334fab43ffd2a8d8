"""
Field Provenance Viewer - Command Line Entry Point

Usage:
    field-provenance serve                     # Run the review web interface
    field-provenance render form.pdf out.png   # Render a page with its overlay
    field-provenance config                    # Create sample config
    field-provenance info                      # Show environment information
"""

import argparse
import asyncio
import base64
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .core.config_manager import ConfigurationManager
from .core.models import DocumentSource, ExtractedDocument
from .core.provenance_store import parse
from .viewer.overlay import OverlayRenderer
from .viewer.rasterizer import Pdf2ImageRasterizer
from .viewer.render_surface import RenderSurface, RenderSurfaceConfig
from .viewer.sync import SynchronizationController
from .viewer.viewport import ViewportController

logger = logging.getLogger(__name__)


def setup_basic_logging():
    """Setup basic logging before configuration is loaded."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def show_environment_info(config):
    """Show environment information for debugging."""
    env_info = ConfigurationManager.get_environment_info()

    print("🔧 Environment Information:")
    print(f"   Python: {env_info['python_version']}")
    print(f"   Platform: {env_info['platform']}")
    print(f"   Working Directory: {env_info['working_directory']}")

    storage = config['storage']
    print("\n⚙️  Configuration:")
    print(f"   Storage Backend: {storage['backend']}")
    if storage['backend'] == 'api':
        print(f"   Document API: {storage['api_base_url']}")
    else:
        print(f"   Azure Container: {storage['container_name']}")
        print(f"   Managed Identity: {'Enabled' if storage['enable_managed_identity'] else 'Disabled'}")
    print(f"   Render DPI: {config['rendering']['dpi']}")
    print(f"   Reduced Motion: {'Yes' if config['rendering']['reduced_motion'] else 'No'}")
    print(f"   Server: {config['server']['host']}:{config['server']['port']}")

    if env_info['environment_variables']:
        print("\n🌐 Environment Variables:")
        for key, value in sorted(env_info['environment_variables'].items()):
            print(f"   {key}={value}")


def run_serve_mode(config):
    """Serve the review interface."""
    import uvicorn

    from .web.app import create_app

    host, port = config['server']['host'], config['server']['port']
    logger.info(f"🚀 Starting Field Provenance Viewer on http://{host}:{port}")
    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_level=config['logging']['level'].lower(),
    )


async def run_render_mode(config, args):
    """Render one page of a local PDF with its provenance overlay to an image."""
    pdf_path = Path(args.pdf)
    encoded = base64.b64encode(pdf_path.read_bytes()).decode('ascii')
    provenance = parse(Path(args.provenance).read_text(encoding='utf-8')) if args.provenance else ()

    viewport = ViewportController(Pdf2ImageRasterizer(dpi=config['rendering']['dpi']))
    sync = SynchronizationController(viewport)
    surface = RenderSurface(
        RenderSurfaceConfig(
            pdf_source=encoded,
            current_page=args.page,
            field_provenances=provenance,
        ),
        viewport,
        OverlayRenderer.from_config(config),
    )
    sync.add_highlight_listener(lambda target: surface.reconfigure(highlighted_field=target))
    sync.switch_document(ExtractedDocument(
        id=pdf_path.name,
        file_name=pdf_path.name,
        byte_source=DocumentSource.from_pdf_source(encoded),
        provenance=provenance,
    ))

    try:
        if not await surface.open(document_id=pdf_path.name):
            logger.error(f"❌ Could not load {pdf_path}: {viewport.error}")
            return False

        if args.field:
            target = sync.select_field(args.field, args.form)
            if target is None:
                logger.warning(f"⚠️  No source available for '{args.field}' in {args.form}")
            else:
                logger.info(
                    f"🎯 {target.field_name} → page {target.page_number} ({target.granularity.value} region)")

        if args.zoom:
            viewport.set_zoom(args.zoom)

        composite = await surface.render(show_tooltip=args.tooltip)
        if composite is None:
            logger.error(f"❌ Could not render page {viewport.page_number}: {viewport.error}")
            return False

        composite.image.save(args.output)
        logger.info(
            f"💾 Page {composite.page_number}/{viewport.page_count} at {composite.zoom:.0%} saved to: {args.output}")
        logger.info(f"   Markers: {len(composite.scene.markers)}, highlight: {'Yes' if composite.scene.active else 'No'}")
        return True
    finally:
        await surface.aclose()


def main():
    """Main entry point."""
    setup_basic_logging()
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Field Provenance Viewer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  field-provenance serve                                   # Start the web interface
  field-provenance serve --port 9000                       # Serve on another port
  field-provenance render w2.pdf w2.png --provenance w2.json --field federalWages --form W-2
  field-provenance config                                  # Create sample config
  field-provenance info                                    # Show environment info
        """
    )

    parser.add_argument(
        'mode',
        choices=['serve', 'render', 'config', 'info'],
        help='Command to run'
    )
    parser.add_argument('pdf', nargs='?', help='PDF file (render mode)')
    parser.add_argument('output', nargs='?', help='Output image path (render mode)')
    parser.add_argument('--provenance', help='Provenance JSON file for the PDF')
    parser.add_argument('--field', help='Field to highlight')
    parser.add_argument('--form', help='Form type of the highlighted field, e.g. W-2')
    parser.add_argument('--page', type=int, help='Page to render when no field is highlighted')
    parser.add_argument('--zoom', type=float, help='Zoom level (0.5 - 3.0)')
    parser.add_argument('--tooltip', action='store_true', help='Draw the field detail tooltip')
    parser.add_argument('--host', help='Override server host')
    parser.add_argument('--port', type=int, help='Override server port')
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Override log level'
    )

    args = parser.parse_args()

    # Handle special modes first
    if args.mode == 'config':
        ConfigurationManager.create_sample_env_file()
        return

    try:
        config = ConfigurationManager.load_configuration()

        if args.log_level:
            config['logging']['level'] = args.log_level
        if args.host:
            config['server']['host'] = args.host
        if args.port:
            config['server']['port'] = args.port

        ConfigurationManager.setup_logging(config)

        if args.mode == 'info':
            show_environment_info(config)
            return

        if args.mode == 'render':
            if not args.pdf or not args.output:
                logger.error("❌ PDF and output paths are required for render mode")
                parser.print_help()
                sys.exit(1)
            if args.field and not args.form:
                logger.error("❌ --form is required with --field")
                sys.exit(1)
            if not asyncio.run(run_render_mode(config, args)):
                sys.exit(1)
        elif args.mode == 'serve':
            run_serve_mode(config)

    except KeyboardInterrupt:
        logger.info("🛑 Application stopped by user")
    except ValueError as e:
        logger.error(f"❌ {e}")
        logger.info("💡 Run 'field-provenance config' to create a sample configuration file")
        sys.exit(1)


if __name__ == "__main__":
    main()
