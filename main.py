"""Community Center SQL Tutorial - Main application entry point.

This module builds the Gradio tutorial UI, wraps it in the FastAPI delivery
server (health check and fallback routing) and runs it with uvicorn.
"""

import argparse
import logging
import os

import gradio as gr
import uvicorn
from dotenv import find_dotenv, load_dotenv
from gradio.themes import Default, GoogleFont

from sqltutor.css_util import custom_css, shortcut_head
from sqltutor.server_util import APP_NAME, DEFAULT_PORT, build_server
from sqltutor.tutorial_util import build_tutorial_tab, on_load

# Load environment variables
load_dotenv(find_dotenv())
logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger.info("Environment variables loaded")


# Configure Gradio theme
theme = Default(
    spacing_size="sm",
    font=[
        GoogleFont(name="Roboto"),
        GoogleFont(name="Noto Sans"),
    ],
).set()

# Create Gradio interface
with gr.Blocks(css=custom_css, theme=theme, title=APP_NAME, head=shortcut_head) as app:
    gr.Markdown(value="# 🏢 Community Center SQL Tutorial", elem_classes="main_Header")
    gr.Markdown(
        value="### Learn SQL step by step against a live community center database",
        elem_classes="sub_Header",
    )

    load_outputs = build_tutorial_tab()

    # One session per page load; reloading the page starts over
    app.load(fn=on_load, outputs=load_outputs)

    gr.Markdown(
        value="### All data lives in memory for this browser tab only. Reload the page to reset the database.",
        elem_classes="sub_Header",
    )

app.queue()
server = build_server(app)


def main():
    parser = argparse.ArgumentParser(description="Launch the Community Center SQL Tutorial")
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("HOST", "0.0.0.0"),
        help="Host address to bind the server (default: $HOST or 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", DEFAULT_PORT)),
        help=f"Port number to run the server (default: $PORT or {DEFAULT_PORT})",
    )
    args = parser.parse_args()

    logger.info(f"🚀 {APP_NAME} running on port {args.port}")
    logger.info(f"📚 Access your tutorial at: http://localhost:{args.port}/tutorial/")
    logger.info(f"❤️ Health check available at: http://localhost:{args.port}/health")
    uvicorn.run(server, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
