import os

if __name__ == "__main__":
    from sheet_studio.config import load_config
    from sheet_studio.logging_config import configure_logging
    from sheet_studio.studio import build_ui

    log_file = configure_logging()
    server = load_config()["server"]
    port = int(os.getenv("SHEET_STUDIO_PORT", server["port"]))
    server_name = os.getenv("SHEET_STUDIO_SERVER_NAME", server["host"])
    open_browser = os.getenv("SHEET_STUDIO_OPEN_BROWSER", "0").lower() in {"1", "true", "yes", "on"}
    print(f"[SheetStudio] Logging to: {log_file}")
    build_ui().queue().launch(
        share=False,
        inbrowser=open_browser,
        server_name=server_name,
        server_port=port,
        show_error=True,
    )
