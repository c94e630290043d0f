from weatherly.factory import create_app

app = create_app()
