from haygame import create_app, socketio
from haygame.security import ssl_options
from haygame.services.scheduler import start_background_tasks

app = create_app()

if __name__ == '__main__':
    start_background_tasks(app)
    options = ssl_options(app.config)
    scheme = 'https' if options else 'http'
    app.logger.info(f"[server] HAY Run server starting on {scheme}://localhost:5000")
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=True, use_reloader=False, **options)
