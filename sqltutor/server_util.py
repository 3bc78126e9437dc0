"""サーバーユーティリティモジュール.

GradioアプリをFastAPIにマウントし、ヘルスチェック用のエンドポイントと、
それ以外のパスをチュートリアルへ転送するルートを追加します。
"""

import logging
from datetime import datetime, timezone

import gradio as gr
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

logger = logging.getLogger(__name__)

APP_NAME = "Community Center SQL Tutorial"
TUTORIAL_PATH = "/tutorial"
DEFAULT_PORT = 3000


def health_payload() -> dict:
    return {
        "status": "OK",
        "message": f"{APP_NAME} is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def build_server(blocks: gr.Blocks, path: str = TUTORIAL_PATH) -> FastAPI:
    """チュートリアルを配信するFastAPIサーバーを構築する.

    Args:
        blocks: マウントするGradioアプリ
        path: Gradioアプリのマウント先

    Returns:
        FastAPI: /health、マウント済みのアプリ、転送ルートを持つサーバー
    """
    server = FastAPI(title=APP_NAME)

    # /healthは全パス転送ルートより前に登録する
    @server.get("/health")
    def health():
        return health_payload()

    server = gr.mount_gradio_app(server, blocks, path=path)

    @server.get("/{full_path:path}", include_in_schema=False)
    def spa_fallback(full_path: str):
        logger.debug(f"Unmatched path /{full_path}; redirecting to {path}/")
        return RedirectResponse(url=f"{path}/")

    logger.info(f"Server configured: tutorial at {path}/, health check at /health")
    return server
