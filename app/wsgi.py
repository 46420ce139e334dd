from app.contabil import create_app

app = create_app()
