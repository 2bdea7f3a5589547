import logging

import pytest

from hellok8s._cogs.structs.credentials import ConnectionInfo, LoginError
from hellok8s._core.intents import piggybacking
from hellok8s._core.intents.piggybacking import PRIORITY_OF_KUBECONFIG, \
                                                PRIORITY_OF_SERVICE_ACCOUNT, login, \
                                                login_with_kubeconfig, login_with_service_account

MINICONFIG = '''
    kind: Config
    current-context: ctx
    contexts:
      - name: ctx
        context:
          cluster: clstr
          user: usr
    clusters:
      - name: clstr
    users:
      - name: usr
'''


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    monkeypatch.delenv('KUBECONFIG', raising=False)
    monkeypatch.setenv('HOME', str(tmp_path / 'home'))  # no ~/.kube/config
    monkeypatch.setattr(piggybacking, 'SERVICE_ACCOUNT_DIR', str(tmp_path / 'sa'))


@pytest.fixture()
def logger():
    return logging.getLogger('hellok8s.tests.login')


@pytest.fixture()
def service_account_dir(tmp_path):
    path = tmp_path / 'sa'
    path.mkdir()
    return path


def test_service_account_absent(logger):
    assert login_with_service_account(logger=logger) is None


def test_service_account_with_all_files(service_account_dir, logger):
    (service_account_dir / 'token').write_text(' tkn \n')
    (service_account_dir / 'namespace').write_text('ns1\n')
    (service_account_dir / 'ca.crt').write_text('ca')

    info = login_with_service_account(logger=logger)

    assert info == ConnectionInfo(
        server='https://kubernetes.default.svc',
        ca_path=str(service_account_dir / 'ca.crt'),
        token='tkn',
        default_namespace='ns1',
        priority=PRIORITY_OF_SERVICE_ACCOUNT,
    )


def test_service_account_with_the_token_only(service_account_dir, logger):
    (service_account_dir / 'token').write_text('tkn')

    info = login_with_service_account(logger=logger)

    assert info is not None
    assert info.token == 'tkn'
    assert info.ca_path is None
    assert info.default_namespace is None


def test_kubeconfig_absent(logger):
    assert login_with_kubeconfig(logger=logger) is None


def test_kubeconfig_from_the_env_var(tmp_path, monkeypatch, logger):
    kubeconfig = tmp_path / 'config'
    kubeconfig.write_text('''
        kind: Config
        current-context: ctx
        contexts:
          - name: ctx
            context:
              cluster: clstr
              user: usr
              namespace: ns
        clusters:
          - name: clstr
            cluster:
              server: https://hostname:1234/
              certificate-authority-data: base64dataA
              certificate-authority: /pathA
              insecure-skip-tls-verify: true
        users:
          - name: usr
            user:
              username: uname
              password: passw
              client-certificate-data: base64dataC
              client-certificate: /pathC
              client-key-data: base64dataK
              client-key: /pathK
              token: tkn
    ''')
    monkeypatch.setenv('KUBECONFIG', str(kubeconfig))

    info = login_with_kubeconfig(logger=logger)

    assert info == ConnectionInfo(
        server='https://hostname:1234/',
        ca_path='/pathA',
        ca_data='base64dataA',
        insecure=True,
        username='uname',
        password='passw',
        token='tkn',
        certificate_path='/pathC',
        certificate_data='base64dataC',
        private_key_path='/pathK',
        private_key_data='base64dataK',
        default_namespace='ns',
        priority=PRIORITY_OF_KUBECONFIG,
    )


def test_kubeconfig_from_the_home_directory(tmp_path, logger):
    kubeconfig = tmp_path / 'home' / '.kube' / 'config'
    kubeconfig.parent.mkdir(parents=True)
    kubeconfig.write_text(MINICONFIG)

    info = login_with_kubeconfig(logger=logger)

    assert info is not None
    assert info.priority == PRIORITY_OF_KUBECONFIG


def test_kubeconfig_with_the_provider_token(tmp_path, monkeypatch, logger):
    kubeconfig = tmp_path / 'config'
    kubeconfig.write_text('''
        current-context: ctx
        contexts:
          - name: ctx
            context:
              cluster: clstr
              user: usr
        clusters:
          - name: clstr
            cluster:
              server: https://hostname/
        users:
          - name: usr
            user:
              auth-provider:
                config:
                  access-token: provtkn
    ''')
    monkeypatch.setenv('KUBECONFIG', str(kubeconfig))

    info = login_with_kubeconfig(logger=logger)

    assert info is not None
    assert info.token == 'provtkn'


def test_kubeconfig_merged_from_multiple_files(tmp_path, monkeypatch, logger):
    kubeconfig1 = tmp_path / 'config1'
    kubeconfig2 = tmp_path / 'config2'
    kubeconfig1.write_text('''
        current-context: ctx
        contexts:
          - name: ctx
            context:
              cluster: clstr
    ''')
    kubeconfig2.write_text('''
        current-context: ignored
        clusters:
          - name: clstr
            cluster:
              server: https://second/
    ''')
    monkeypatch.setenv('KUBECONFIG', f'{kubeconfig1}:{kubeconfig2}')

    info = login_with_kubeconfig(logger=logger)

    assert info is not None
    assert info.server == 'https://second/'


def test_kubeconfig_without_the_current_context(tmp_path, monkeypatch, logger):
    kubeconfig = tmp_path / 'config'
    kubeconfig.write_text('kind: Config\n')
    monkeypatch.setenv('KUBECONFIG', str(kubeconfig))

    with pytest.raises(LoginError, match=r"Current context is not set"):
        login_with_kubeconfig(logger=logger)


def test_kubeconfig_with_a_broken_context(tmp_path, monkeypatch, logger):
    kubeconfig = tmp_path / 'config'
    kubeconfig.write_text('''
        current-context: ctx
        contexts:
          - name: ctx
            context:
              cluster: absent
    ''')
    monkeypatch.setenv('KUBECONFIG', str(kubeconfig))

    with pytest.raises(LoginError, match=r"Broken kubeconfig for the context 'ctx'"):
        login_with_kubeconfig(logger=logger)


def test_login_fails_without_any_credentials(logger):
    with pytest.raises(LoginError):
        login(logger=logger)


def test_login_prefers_the_service_account(tmp_path, monkeypatch, service_account_dir, logger):
    (service_account_dir / 'token').write_text('tkn')
    kubeconfig = tmp_path / 'config'
    kubeconfig.write_text(MINICONFIG)
    monkeypatch.setenv('KUBECONFIG', str(kubeconfig))

    info = login(logger=logger)

    assert info.server == 'https://kubernetes.default.svc'


def test_login_priorities_are_patchable(tmp_path, monkeypatch, service_account_dir, logger):
    monkeypatch.setattr(piggybacking, 'PRIORITY_OF_KUBECONFIG', 100)
    (service_account_dir / 'token').write_text('tkn')
    kubeconfig = tmp_path / 'config'
    kubeconfig.write_text(MINICONFIG)
    monkeypatch.setenv('KUBECONFIG', str(kubeconfig))

    info = login(logger=logger)

    assert info.priority == 100
