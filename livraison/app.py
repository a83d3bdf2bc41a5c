# module livraison.app
from livraison.app_setup.factory import create_app

# App globale
app = create_app()
