from confdoc_sync.cli import app

app()
