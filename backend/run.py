from category_game import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    try:
        socketio.run(app, debug=True, use_reloader=False)
    finally:
        app.extensions['category_game'].shutdown()
