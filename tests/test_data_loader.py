import pandas as pd
import pytest
import yaml

from bank_segmentation import SegmentationPipeline
from bank_segmentation.common import DEFAULT_CONFIG, DataLoader, load_config
from bank_segmentation.common.config import merge_config
from bank_segmentation.common.data_loader import TRANSACTION_COLUMNS
from bank_segmentation.common.sample_data import generate_transactions


@pytest.fixture
def raw_file(tmp_path):
    raw = generate_transactions(n_customers=50, n_transactions=400, seed=3)
    path = tmp_path / 'transactions.csv'
    raw.to_csv(path, index=False)
    return path, raw


class TestLoadTransactions:

    def test_canonical_columns_and_types(self, raw_file):
        path, raw = raw_file
        df = DataLoader().load_transactions(path)

        assert list(df.columns) == TRANSACTION_COLUMNS
        assert len(df) == len(raw)
        assert pd.api.types.is_datetime64_any_dtype(df['transaction_date'])
        assert pd.api.types.is_numeric_dtype(df['transaction_amount'])
        assert df['transaction_date'].notna().all()
        assert df['customer_id'].nunique() == 50

    def test_day_first_dates(self):
        raw = pd.DataFrame({
            'CustomerID': ['C1', 'C2'],
            'TransactionDate': ['2/8/16', '25/12/16'],
            'TransactionAmount (INR)': ['100.5', 'oops'],
            'CustAccountBalance': [1000, None],
            'CustGender': [' M', 'F'],
            'age': [30, 40],
        })
        df = DataLoader().prepare_transactions(raw)

        assert df['transaction_date'].tolist() == [pd.Timestamp('2016-08-02'), pd.Timestamp('2016-12-25')]
        assert df['transaction_amount'].iloc[0] == pytest.approx(100.5)
        assert pd.isna(df['transaction_amount'].iloc[1])
        assert df['gender'].tolist() == ['M', 'F']

    def test_unparseable_dates_become_missing(self):
        raw = pd.DataFrame({
            'CustomerID': ['C1'],
            'TransactionDate': ['not a date'],
            'TransactionAmount (INR)': [10.0],
            'CustAccountBalance': [1.0],
            'CustGender': ['M'],
            'age': [30],
        })
        df = DataLoader().prepare_transactions(raw)

        assert df['transaction_date'].isna().all()

    def test_missing_columns(self):
        raw = pd.DataFrame({'CustomerID': ['C1'], 'TransactionDate': ['1/1/16']})

        with pytest.raises(ValueError, match='Missing required columns'):
            DataLoader().prepare_transactions(raw)

    def test_age_from_date_of_birth(self):
        config = merge_config(DEFAULT_CONFIG, {'data': {'dob_column': 'CustomerDOB'}})
        raw = pd.DataFrame({
            'CustomerID': ['C1', 'C2'],
            'CustomerDOB': ['10/1/94', '1/1/1800'],
            'TransactionDate': ['2/8/16', '2/8/16'],
            'TransactionAmount (INR)': [10.0, 20.0],
            'CustAccountBalance': [1.0, 2.0],
            'CustGender': ['M', 'F'],
        })

        df = DataLoader(config).prepare_transactions(raw)

        assert df['age'].iloc[0] == 22
        assert pd.isna(df['age'].iloc[1])
        assert 'CustomerDOB' not in df.columns

    def test_partial_data_config_keeps_column_mapping(self):
        raw = pd.DataFrame({
            'CustomerID': ['C1'],
            'TransactionDate': ['2/8/16'],
            'TransactionAmount (INR)': [10.0],
            'CustAccountBalance': [1.0],
            'CustGender': ['F'],
            'age': [30],
        })
        df = DataLoader({'data': {'dayfirst': True}}).prepare_transactions(raw)

        assert list(df.columns) == TRANSACTION_COLUMNS
        assert df['transaction_date'].iloc[0] == pd.Timestamp('2016-08-02')

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DataLoader().load_transactions(tmp_path / 'absent.csv')

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / 'transactions.txt'
        path.write_text('x')

        with pytest.raises(ValueError, match='Unsupported'):
            DataLoader().load_csv(path)


class TestValidateData:

    def test_valid_frame(self, raw_file):
        path, _ = raw_file
        loader = DataLoader()
        is_valid, report = loader.validate_data(loader.load_transactions(path))

        assert is_valid
        assert report['statistics']['n_customers'] == 50

    def test_empty_frame(self):
        is_valid, report = DataLoader().validate_data(pd.DataFrame(columns=TRANSACTION_COLUMNS))

        assert not is_valid
        assert report['errors']

    def test_non_binary_gender_warning(self):
        df = pd.DataFrame({
            'customer_id': ['a', 'b', 'c'],
            'transaction_date': pd.to_datetime(['2016-01-01'] * 3),
            'transaction_amount': [1.0, 2.0, 3.0],
            'account_balance': [1.0, 2.0, 3.0],
            'gender': ['M', 'F', 'T'],
            'age': [20.0, 30.0, 40.0],
        })
        _, report = DataLoader().validate_data(df)

        assert any('binary encoding' in w for w in report['warnings'])


class TestConfig:

    def test_defaults(self):
        assert load_config(None) == DEFAULT_CONFIG
        assert load_config(None) is not DEFAULT_CONFIG

    def test_missing_file_falls_back(self, tmp_path):
        assert load_config(tmp_path / 'absent.yaml') == DEFAULT_CONFIG

    def test_nested_override(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text(yaml.safe_dump({'clustering': {'n_init': 5}, 'rfm': {'positive_gender': 'F'}}))

        config = load_config(path)

        assert config['clustering']['n_init'] == 5
        assert config['clustering']['k_max'] == DEFAULT_CONFIG['clustering']['k_max']
        assert config['rfm']['positive_gender'] == 'F'
        assert config['rfm']['n_bins'] == 5

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text('- just\n- a list\n')

        with pytest.raises(ValueError):
            load_config(path)

    def test_elbow_restarts_configurable(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text(yaml.safe_dump({'clustering': {'elbow_n_init': 2}}))

        pipeline = SegmentationPipeline(load_config(path))

        assert DEFAULT_CONFIG['clustering']['elbow_n_init'] == 10
        assert pipeline.segmenter.elbow_n_init == 2

    def test_merge_does_not_mutate_base(self):
        merged = merge_config(DEFAULT_CONFIG, {'output': {'dir': 'elsewhere'}})

        assert merged['output']['dir'] == 'elsewhere'
        assert DEFAULT_CONFIG['output']['dir'] == 'outputs'
