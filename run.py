from cfb_pickem import create_app, db
from cfb_pickem.models import AnonymousPick, Game, Pick, User, WeekSettings

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Game": Game,
        "Pick": Pick,
        "AnonymousPick": AnonymousPick,
        "WeekSettings": WeekSettings,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
