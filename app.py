# app.py

from dotenv import load_dotenv
# Carrega variáveis do arquivo .env para desenvolvimento local.
load_dotenv()

from flask import Flask, jsonify
from extensions import db, login_manager, mail, migrate
from errors import GestaoError
from models import User, SuperUser
import click
import os
from sqlalchemy.inspection import inspect


def _env_bool(name, default):
    return os.environ.get(name, default).lower() in ('true', '1', 't')


def create_app(config_overrides=None):
    app = Flask(__name__)

    # --- Configuração da SECRET_KEY ---
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'uma_chave_secreta_muito_segura_e_longa_aqui_fallback_dev')

    # --- Banco de dados ---
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///projetos.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # --- Flask-Mail ---
    app.config['MAIL_SERVER'] = os.environ.get('MAIL_SERVER', 'smtp.googlemail.com')
    app.config['MAIL_PORT'] = int(os.environ.get('MAIL_PORT', 587))
    app.config['MAIL_USE_TLS'] = _env_bool('MAIL_USE_TLS', 'True')
    app.config['MAIL_USERNAME'] = os.environ.get('EMAIL_USER')
    app.config['MAIL_PASSWORD'] = os.environ.get('EMAIL_PASS')
    app.config['MAIL_DEFAULT_SENDER'] = os.environ.get('MAIL_DEFAULT_SENDER', 'nao-responda@example.com')

    # --- Convites ---
    app.config['APP_BASE_URL'] = os.environ.get('APP_BASE_URL', 'http://localhost:5000')
    app.config['INVITE_TOKEN_MAX_AGE'] = int(os.environ.get('INVITE_TOKEN_MAX_AGE', 7 * 24 * 3600))
    app.config['PRESENCE_WINDOW_SECONDS'] = int(os.environ.get('PRESENCE_WINDOW_SECONDS', 300))

    # --- Notificações push (VAPID) ---
    app.config['VAPID_PUBLIC_KEY'] = os.environ.get('VAPID_PUBLIC_KEY')
    app.config['VAPID_PRIVATE_KEY'] = os.environ.get('VAPID_PRIVATE_KEY')
    vapid_email = os.environ.get('VAPID_CLAIM_EMAIL')
    app.config['VAPID_CLAIMS'] = {'sub': f'mailto:{vapid_email}'} if vapid_email else None

    if config_overrides:
        app.config.update(config_overrides)

    db.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)

    login_manager.session_protection = "strong"

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'message': 'Você precisa estar logado para acessar este recurso.'}), 401

    from routes import main as main_blueprint
    app.register_blueprint(main_blueprint)

    @app.errorhandler(GestaoError)
    def handle_domain_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.__class__.__name__}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def page_not_found(error):
        return jsonify({'success': False, 'message': 'Recurso não encontrado.'}), 404

    @app.errorhandler(500)
    def internal_server_error(error):
        db.session.rollback()
        return jsonify({'success': False, 'message': 'Erro interno do servidor.'}), 500

    # Comandos da CLI do Flask.
    @app.cli.command('create-db')
    def create_db_command():
        """Cria as tabelas do banco de dados."""
        db.create_all()
        click.echo('Tabelas criadas.')

    @app.cli.command('list-tables')
    def list_tables_command():
        """Lista todas as tabelas atualmente no banco de dados."""
        table_names = inspect(db.engine).get_table_names()
        if table_names:
            click.echo("Tabelas existentes no banco de dados:")
            for table in sorted(table_names):
                click.echo(f"- {table}")
        else:
            click.echo("Nenhuma tabela encontrada no banco de dados.")

    @app.cli.command('make-superuser')
    @click.argument('email')
    @click.option('--password', default=None, help='Define a senha e marca o usuário como ativo.')
    def make_superuser_command(email, password):
        """Concede o acesso de super-usuário, criando o usuário se necessário."""
        user = User.query.filter(db.func.lower(User.email) == email.strip().lower()).first()
        if user is None:
            user = User(email=email.strip().lower(), role='manager')
            db.session.add(user)
            click.echo(f"Usuário '{user.email}' criado.")
        if password:
            user.set_password(password)
            user.password_set = True
        db.session.flush()
        if db.session.get(SuperUser, user.id) is None:
            db.session.add(SuperUser(user_id=user.id))
            click.echo(f"Usuário '{user.email}' agora é super-usuário.")
        else:
            click.echo(f"Usuário '{user.email}' já é super-usuário.")
        db.session.commit()

    return app
